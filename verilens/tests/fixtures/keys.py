"""
Signing key material and secret providers for tests.

Keys are generated fresh per call; nothing is checked in.
"""

from __future__ import annotations

import base64
from typing import Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from verilens.app.errors import ConfigurationError


def _pkcs8_pem(private_key) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1())


def ed25519_private_key():
    return ed25519.Ed25519PrivateKey.generate()


def pem_secret(private_key) -> str:
    return _pkcs8_pem(private_key)


def base64_pem_secret(private_key) -> str:
    return base64.b64encode(_pkcs8_pem(private_key).encode("ascii")).decode("ascii")


class StaticSecretProvider:
    """In-memory SecretProvider that records lookups."""

    def __init__(self, secrets: Dict[str, str]) -> None:
        self._secrets = dict(secrets)
        self.requested: list[str] = []

    def get_secret(self, name: str) -> str:
        self.requested.append(name)
        if name not in self._secrets:
            raise ConfigurationError(f"Secret {name} not found")
        return self._secrets[name]
