"""
Captured image intake.

Validates a capture request, checksums the raw bytes, and persists them
AES-256-GCM encrypted. The checksum returned here is the same SHA-256
digest the verification pipeline computes for those bytes.
"""

from __future__ import annotations

import base64
import binascii
import functools
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Literal, Optional

from anyio import to_thread
from pydantic import BaseModel, ConfigDict, Field

from verilens.app.config import Settings, get_settings
from verilens.app.crypto.encryption import write_encrypted_file
from verilens.app.errors import ConfigurationError, ValidationError
from verilens.app.utils.hashing import sha256_hex

logger = logging.getLogger("verilens.capture")

EncryptionKeyProvider = Callable[[], Awaitable[bytes]]


class CaptureRequest(BaseModel):
    device_id: str
    format: Literal["jpeg", "png", "heic"]
    buffer: bytes
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)


class CaptureResponse(BaseModel):
    checksum: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    encrypted_path: str
    captured_at: datetime

    model_config = ConfigDict(frozen=True)


def env_key_provider(settings: Settings) -> EncryptionKeyProvider:
    """Key provider reading a base64 AES key from the configured env var."""

    async def _provider() -> bytes:
        env_name = settings.image_encryption_key_env
        encoded = os.environ.get(env_name)
        if not encoded:
            raise ConfigurationError(
                "Missing encryption key for captured images",
                details={"env": env_name},
            )
        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise ConfigurationError(
                "Captured image encryption key is not valid base64",
                details={"env": env_name},
            ) from exc

    return _provider


class ImageCaptureHandler:
    def __init__(
        self,
        key_provider: Optional[EncryptionKeyProvider] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._key_provider = key_provider or env_key_provider(self._settings)

    async def handle_capture(self, request: CaptureRequest) -> CaptureResponse:
        """
        Encrypt and persist one capture.

        Raises:
            ValidationError: missing device id or empty buffer.
            ConfigurationError: no usable encryption key.
        """
        self._validate_request(request)

        key = await self._key_provider()
        checksum = sha256_hex(request.buffer)
        file_name = f"{request.device_id}-{int(time.time() * 1000)}"

        file_path = await to_thread.run_sync(
            functools.partial(
                write_encrypted_file,
                file_name,
                request.buffer,
                key,
                directory=self._settings.encrypted_image_dir,
                iv_length=self._settings.encryption_iv_length,
            )
        )

        logger.info(
            "image_captured",
            extra={"device_id": request.device_id, "checksum": checksum},
        )

        return CaptureResponse(
            checksum=checksum,
            encrypted_path=str(file_path),
            captured_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _validate_request(request: CaptureRequest) -> None:
        if not request.device_id or not request.device_id.strip():
            raise ValidationError("Device identifier required")

        if os.sep in request.device_id or "/" in request.device_id:
            raise ValidationError(
                "Device identifier must not contain path separators"
            )

        if not request.buffer:
            raise ValidationError("Image buffer cannot be empty")
