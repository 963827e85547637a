import base64
import json
import stat
from pathlib import Path

import pytest

from verilens.app.capture.image_capture import (
    CaptureRequest,
    ImageCaptureHandler,
    env_key_provider,
)
from verilens.app.config import Settings
from verilens.app.crypto.encryption import EncryptedPayload, decrypt_buffer
from verilens.app.errors import ConfigurationError, ValidationError
from verilens.app.utils.hashing import sha256_hex
from verilens.app.verification.metadata_extractor import ExifMetadataExtractor
from verilens.app.verification.pipeline import VerificationPipeline
from verilens.tests.fixtures.image_factory import jpeg_with_exif

pytestmark = pytest.mark.anyio

KEY = bytes(range(32))


async def _static_key() -> bytes:
    return KEY


@pytest.fixture
def settings(tmp_path):
    return Settings(encrypted_image_dir=tmp_path / "encrypted")


@pytest.fixture
def handler(settings):
    return ImageCaptureHandler(_static_key, settings=settings)


async def test_capture_is_encrypted_and_checksummed(handler):
    image = jpeg_with_exif()

    response = await handler.handle_capture(
        CaptureRequest(device_id="device-7", format="jpeg", buffer=image)
    )

    assert response.checksum == sha256_hex(image)
    assert response.captured_at.tzinfo is not None

    with open(response.encrypted_path, encoding="utf-8") as fh:
        document = json.load(fh)
    assert set(document) == {"iv", "authTag", "ciphertext"}

    stored = EncryptedPayload.model_validate(document)
    assert decrypt_buffer(stored, KEY) == image


async def test_encrypted_file_is_owner_only(handler, settings):
    response = await handler.handle_capture(
        CaptureRequest(device_id="device-7", format="png", buffer=b"\x89PNG")
    )

    path = Path(response.encrypted_path)
    assert path.parent == settings.encrypted_image_dir
    assert path.name.startswith("device-7-")
    assert path.name.endswith(".enc.json")
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


async def test_capture_checksum_matches_verification_checksum(handler, settings):
    image = jpeg_with_exif()

    capture = await handler.handle_capture(
        CaptureRequest(device_id="device-7", format="jpeg", buffer=image)
    )
    result = await VerificationPipeline(
        settings=settings,
        extractor=ExifMetadataExtractor(),
    ).run(image)

    assert capture.checksum == result.checksum


@pytest.mark.parametrize("device_id", ["", "   ", "../escape", "a/b"])
async def test_invalid_device_id_is_rejected(handler, device_id):
    with pytest.raises(ValidationError):
        await handler.handle_capture(
            CaptureRequest(device_id=device_id, format="jpeg", buffer=b"x")
        )


async def test_empty_buffer_is_rejected(handler, settings):
    with pytest.raises(ValidationError):
        await handler.handle_capture(
            CaptureRequest(device_id="device-7", format="jpeg", buffer=b"")
        )

    assert not settings.encrypted_image_dir.exists()


async def test_env_key_provider_requires_key(monkeypatch, settings):
    monkeypatch.delenv(settings.image_encryption_key_env, raising=False)

    with pytest.raises(ConfigurationError):
        await env_key_provider(settings)()


async def test_env_key_provider_rejects_bad_base64(monkeypatch, settings):
    monkeypatch.setenv(settings.image_encryption_key_env, "***")

    with pytest.raises(ConfigurationError):
        await env_key_provider(settings)()


async def test_default_handler_reads_key_from_environment(monkeypatch, settings):
    monkeypatch.setenv(
        settings.image_encryption_key_env,
        base64.b64encode(KEY).decode("ascii"),
    )
    handler = ImageCaptureHandler(settings=settings)

    response = await handler.handle_capture(
        CaptureRequest(device_id="device-9", format="heic", buffer=b"heic-bytes")
    )

    assert response.checksum == sha256_hex(b"heic-bytes")
