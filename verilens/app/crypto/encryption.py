"""
AES-256-GCM helpers for captured images and encrypted secrets.

Two on-disk/wire shapes are supported:

- EncryptedPayload: JSON object ``{"iv", "authTag", "ciphertext"}``, each
  field base64-encoded. Used for persisted captures.
- Packed secret: a single base64 string of ``iv(12) | tag(16) | ciphertext``.
  Used for values in the secrets file.
"""

from __future__ import annotations

import base64
import logging
import os
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from verilens.app.errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
TAG_LENGTH = 16
PACKED_IV_LENGTH = 12


class EncryptedPayload(BaseModel):
    iv: str
    auth_tag: str = Field(
        ...,
        serialization_alias="authTag",
        validation_alias=AliasChoices("auth_tag", "authTag"),
    )
    ciphertext: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


def _require_key(key: bytes) -> None:
    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            "Encryption key must be 32 bytes for AES-256-GCM",
            details={"key_length": len(key)},
        )


def encrypt_buffer(
    buffer: bytes,
    key: bytes,
    *,
    iv_length: int = PACKED_IV_LENGTH,
) -> EncryptedPayload:
    _require_key(key)

    iv = os.urandom(iv_length)
    sealed = AESGCM(key).encrypt(iv, bytes(buffer), None)
    ciphertext, auth_tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return EncryptedPayload(
        iv=base64.b64encode(iv).decode("ascii"),
        auth_tag=base64.b64encode(auth_tag).decode("ascii"),
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
    )


def decrypt_buffer(payload: EncryptedPayload, key: bytes) -> bytes:
    """
    Reverse ``encrypt_buffer``.

    Raises:
        cryptography.exceptions.InvalidTag: wrong key or tampered data.
    """
    _require_key(key)

    iv = base64.b64decode(payload.iv)
    auth_tag = base64.b64decode(payload.auth_tag)
    ciphertext = base64.b64decode(payload.ciphertext)

    return AESGCM(key).decrypt(iv, ciphertext + auth_tag, None)


def decrypt_packed_secret(value: str, key: bytes) -> str:
    """Decrypt a packed ``iv | tag | ciphertext`` secret to UTF-8 text."""
    _require_key(key)

    try:
        data = base64.b64decode(value, validate=True)
    except ValueError as exc:
        raise ConfigurationError("Encrypted secret is not valid base64") from exc

    if len(data) < PACKED_IV_LENGTH + TAG_LENGTH:
        raise ConfigurationError("Encrypted secret is truncated")

    iv = data[:PACKED_IV_LENGTH]
    auth_tag = data[PACKED_IV_LENGTH:PACKED_IV_LENGTH + TAG_LENGTH]
    ciphertext = data[PACKED_IV_LENGTH + TAG_LENGTH:]

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + auth_tag, None)
    except InvalidTag as exc:
        raise ConfigurationError(
            "Encrypted secret failed authentication"
        ) from exc

    return plaintext.decode("utf-8")


def write_encrypted_file(
    file_name: str,
    buffer: bytes,
    key: bytes,
    *,
    directory: Union[str, Path],
    iv_length: Optional[int] = None,
) -> Path:
    """
    Encrypt ``buffer`` and persist it as ``<directory>/<file_name>.enc.json``.

    The file is readable by its owner only.
    """
    payload = encrypt_buffer(
        buffer,
        key,
        iv_length=iv_length or PACKED_IV_LENGTH,
    )

    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)

    file_path = target_dir / f"{file_name}.enc.json"
    fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(payload.to_json())

    logger.info("encrypted_image_persisted", extra={"file_path": str(file_path)})
    return file_path
