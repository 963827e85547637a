"""
Secret lookup for key material.

Resolution order for ``get_secret(name)``:
    1. environment variable ``name``
    2. JSON object in the secrets file (``secrets_path`` argument, then
       ``SECRETS_PATH``, then the configured default)

File values may be AES-256-GCM encrypted (see
``verilens.app.crypto.encryption.decrypt_packed_secret``); the
decryption key is read, base64-encoded, from an environment variable.

Secret values are never logged.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from verilens.app.config import Settings, get_settings
from verilens.app.crypto.encryption import decrypt_packed_secret
from verilens.app.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SecretProvider(Protocol):
    def get_secret(self, name: str) -> str:
        ...


class SecretStore:
    """Environment-first secret provider backed by a JSON file."""

    def __init__(
        self,
        *,
        secrets_path: Optional[Union[str, Path]] = None,
        decrypt: bool = False,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._secrets_path = Path(secrets_path) if secrets_path else None
        self._decrypt = decrypt

    def get_secret(self, name: str) -> str:
        env_value = os.environ.get(name)
        if env_value:
            logger.debug("Secret %r served from env", name)
            return env_value

        secrets = self._read_secrets_file(self._resolve_path())

        if name not in secrets:
            raise ConfigurationError(f"Secret {name} not found")

        value = secrets[name]
        if not isinstance(value, str):
            raise ConfigurationError(f"Secret {name} is not a string")

        if self._decrypt:
            value = decrypt_packed_secret(value, self._decryption_key())

        logger.debug("Secret %r served from file", name)
        return value

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve_path(self) -> Path:
        if self._secrets_path is not None:
            return self._secrets_path
        env_path = os.environ.get("SECRETS_PATH")
        if env_path:
            return Path(env_path)
        return self._settings.secrets_path

    @staticmethod
    def _read_secrets_file(path: Path) -> Dict[str, object]:
        if not path.is_file():
            raise ConfigurationError(f"Secrets file not found at {path}")

        raw = path.read_bytes()
        if not raw.strip():
            return {}

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                f"Secrets file {path} is not valid JSON"
            ) from exc

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Secrets file {path} must contain a JSON object"
            )
        return data

    def _decryption_key(self) -> bytes:
        env_name = self._settings.secret_decryption_key_env
        encoded = os.environ.get(env_name)
        if not encoded:
            raise ConfigurationError(
                f'Missing encryption key env "{env_name}"'
            )
        try:
            return base64.b64decode(encoded, validate=True)
        except ValueError as exc:
            raise ConfigurationError(
                f'Encryption key env "{env_name}" is not valid base64'
            ) from exc


def get_secret(name: str, **options: object) -> str:
    """Convenience wrapper around a one-off SecretStore."""
    return SecretStore(**options).get_secret(name)
