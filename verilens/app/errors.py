"""
Error taxonomy for the VeriLens core.

Every failure raised by this package is a ``VeriLensError`` carrying a
stable machine-readable ``code``. Callers branch on the class (or the
code), never on the message text.

Propagation rules:
- ValidationError and MetadataExtractionError are raised immediately
  and are never retried.
- Signing failures are retried by the queue and only surface as a single
  BlockchainSigningError once attempts are exhausted.
- The original cause is always chained (``raise ... from exc``).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VeriLensError(RuntimeError):
    """Base class for all VeriLens failures."""

    code: str = "UNKNOWN"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """
        Log- and wire-safe representation.

        The chained cause is reported by type name only.
        """
        payload: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        if self.__cause__ is not None:
            payload["cause"] = type(self.__cause__).__name__
        return payload


class ValidationError(VeriLensError):
    """Bad input shape: empty image buffer, mismatched depth dimensions."""

    code = "VALIDATION_ERROR"


class MetadataExtractionError(VeriLensError):
    """The metadata extractor could not parse the image."""

    code = "METADATA_EXTRACTION_FAILED"


class ConfigurationError(VeriLensError):
    """Missing or malformed configuration, secrets or key material."""

    code = "CONFIGURATION_ERROR"


class RetryExhaustedError(VeriLensError):
    """
    Terminal retry-queue outcome.

    Raised (as a value handed to ``on_failure``) once a job has failed
    more than ``max_retries`` times.
    """

    code = "BLOCKCHAIN_SIGNING_FAILED"

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.attempts = attempts


class BlockchainSigningError(VeriLensError):
    """A signing request failed terminally."""

    code = "BLOCKCHAIN_SIGNING_FAILED"


class ApiRequestError(VeriLensError):
    """An HTTP request still failed after all retries."""

    code = "API_REQUEST_FAILED"
