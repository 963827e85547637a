"""
Cryptographic primitives for content integrity.

The same SHA-256 digest is used as the verification checksum and as the
payload that the signing client anchors, so both subsystems MUST call
these helpers rather than hashing on their own.

IMPORTANT DESIGN RULE:
- This module hashes bytes, and bytes only.
- ``str`` input is encoded as UTF-8 before hashing.
"""

import hashlib
from pathlib import Path
from typing import Union

_CHUNK_SIZE = 64 * 1024


def sha256_hex(data: Union[bytes, bytearray, memoryview, str]) -> str:
    """
    Compute a deterministic SHA-256 digest.

    Returns:
        The lowercase hexadecimal digest (64 characters, no prefix).
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(
            "sha256_hex expects bytes or str, "
            f"got {type(data).__name__}"
        )

    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Union[str, Path], chunk_size: int = _CHUNK_SIZE) -> str:
    """Stream a file through SHA-256 without loading it whole."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()
