"""
Digest signing over a resilient retry queue.

BlockchainSigningClient signs the SHA-256 digest of a payload with a
private key loaded once at construction. Every ``sign()`` call becomes a
job on the client's own RetryQueue, so:

- signing operations on the key never run concurrently
- transient failures are retried with backoff, invisibly to the caller
- the caller's awaitable settles exactly once: with a hex signature, or
  with a single terminal BlockchainSigningError

HARD GUARANTEES:
- Signs DIGESTS (SHA-256 of the payload), identical to the checksum the
  verification pipeline reports for the same bytes
- Digest and signature are lowercase hex, never base64
- Key loading failures are fatal at construction (ConfigurationError)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

from verilens.app.blockchain.retry_queue import RetryQueue
from verilens.app.config import Settings, get_settings
from verilens.app.errors import (
    BlockchainSigningError,
    ConfigurationError,
    RetryExhaustedError,
)
from verilens.app.schemas.signing import SignatureResult
from verilens.app.security.secret_store import SecretProvider, SecretStore
from verilens.app.utils.hashing import sha256_hex

logger = logging.getLogger("verilens.blockchain.signing")

PrivateKey = Union[
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
]

_PEM_MARKER = "-----BEGIN"


@dataclass
class SigningJob:
    data: bytes
    future: "asyncio.Future[SignatureResult]"


# ----------------------------------------------------------------------
# Key handling
# ----------------------------------------------------------------------

def parse_private_key(secret: str) -> PrivateKey:
    """
    Load a private key from PEM text or base64-encoded PEM.

    The presence of a PEM header marker decides which form is assumed.
    """
    try:
        if _PEM_MARKER in secret:
            pem = secret.encode("utf-8")
        else:
            pem = base64.b64decode("".join(secret.split()), validate=True)

        key = serialization.load_pem_private_key(pem, password=None)
    except Exception as exc:
        raise ConfigurationError(
            "Unable to load blockchain signing key"
        ) from exc

    if not isinstance(
        key,
        (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey),
    ):
        raise ConfigurationError(
            "Unsupported blockchain signing key type",
            details={"key_type": type(key).__name__},
        )

    return key


def _algorithm_name(key: PrivateKey) -> str:
    if isinstance(key, rsa.RSAPrivateKey):
        return "RSA-SHA256"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return "ECDSA-SHA256"
    return "Ed25519"


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class BlockchainSigningClient:
    """
    Serialized, retrying signer bound to one private key.

    The client exclusively owns its RetryQueue; queues are never shared
    between clients.
    """

    def __init__(
        self,
        key_secret_name: Optional[str] = None,
        *,
        secret_provider: Optional[SecretProvider] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.key_secret_name = (
            key_secret_name or self._settings.signing_key_secret_name
        )

        provider = secret_provider or SecretStore(settings=self._settings)

        try:
            secret = provider.get_secret(self.key_secret_name)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise ConfigurationError(
                f"Secret provider failed for {self.key_secret_name}"
            ) from exc

        self._private_key = parse_private_key(secret)
        self.algorithm = _algorithm_name(self._private_key)

        self._queue: RetryQueue[SigningJob] = RetryQueue(
            self._handle_job,
            max_retries=self._settings.retry_max_retries,
            base_delay_ms=self._settings.retry_base_delay_ms,
            on_failure=self._reject_job,
            attempt_timeout=self._settings.retry_attempt_timeout_seconds,
        )

        logger.info(
            "signing_client_ready",
            extra={
                "key_secret_name": self.key_secret_name,
                "algorithm": self.algorithm,
            },
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def sign(self, payload: Union[bytes, str]) -> str:
        """
        Sign the SHA-256 digest of ``payload``.

        Returns:
            The signature as lowercase hex.

        Raises:
            BlockchainSigningError: every attempt failed.
        """
        result = await self.sign_result(payload)
        return result.signature_hex

    async def sign_result(self, payload: Union[bytes, str]) -> SignatureResult:
        """Like ``sign`` but also returns the digest that was signed."""
        data = (
            payload.encode("utf-8")
            if isinstance(payload, str)
            else bytes(payload)
        )

        future: asyncio.Future[SignatureResult] = (
            asyncio.get_running_loop().create_future()
        )
        self._queue.enqueue(SigningJob(data=data, future=future))
        return await future

    def verify(self, payload: Union[bytes, str], signature_hex: str) -> bool:
        """Check a signature produced by this client's key."""
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        digest = bytes.fromhex(sha256_hex(data))

        try:
            signature = bytes.fromhex(signature_hex)
        except ValueError:
            return False

        public_key = self._private_key.public_key()
        try:
            if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(
                    signature, digest, padding.PKCS1v15(), hashes.SHA256()
                )
            elif isinstance(public_key, ec.EllipticCurvePublicKey):
                public_key.verify(signature, digest, ec.ECDSA(hashes.SHA256()))
            else:
                public_key.verify(signature, digest)
        except InvalidSignature:
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued signing job has settled."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Queue callbacks
    # ------------------------------------------------------------------

    async def _handle_job(self, job: SigningJob) -> None:
        if job.future.done():
            # Caller stopped waiting (cancelled); nothing to deliver.
            return

        result = await self._execute_signing(job.data)

        if not job.future.done():
            job.future.set_result(result)

    def _reject_job(self, job: SigningJob, error: RetryExhaustedError) -> None:
        failure = BlockchainSigningError(
            "Blockchain signing failed",
            details={"attempts": error.attempts},
        )
        failure.__cause__ = error

        if not job.future.done():
            job.future.set_exception(failure)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def _sign_digest(self, digest: bytes) -> bytes:
        key = self._private_key
        if isinstance(key, rsa.RSAPrivateKey):
            return key.sign(digest, padding.PKCS1v15(), hashes.SHA256())
        if isinstance(key, ec.EllipticCurvePrivateKey):
            return key.sign(digest, ec.ECDSA(hashes.SHA256()))
        return key.sign(digest)

    async def _execute_signing(self, data: bytes) -> SignatureResult:
        digest = sha256_hex(data)

        try:
            signature = self._sign_digest(bytes.fromhex(digest))
        except Exception as exc:
            logger.error(
                "signing_failed",
                extra={
                    "digest": digest,
                    "error_type": type(exc).__name__,
                },
            )
            raise BlockchainSigningError("Blockchain signing failed") from exc

        logger.info("payload_signed", extra={"digest": digest})

        return SignatureResult(
            digest=digest,
            signature_hex=signature.hex(),
            algorithm=self.algorithm,
        )
