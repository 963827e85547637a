"""
Photo verification pipeline.

Turns raw image bytes, plus an optional depth frame and an optional
expected device identifier, into a bounded confidence score and a
three-way verdict.

Execution order:
    1. Input validation (empty buffers are rejected before hashing)
    2. Checksum (SHA-256, reused verbatim as the signing digest)
    3. Metadata extraction (delegated; failures abort the run)
    4. EXIF plausibility score
    5. Depth score (only when a frame is supplied)
    6. Verdict resolution

IMPORTANT:
- The EXIF score is a heuristic plausibility signal, NOT a
  cryptographic proof. EXIF is trivially editable.
- A run either returns a complete VerificationResult or raises.
  There are no partial verdicts.
- Nothing here is retried; validation and extraction failures are
  caller or upstream data problems, not transient faults.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Optional

from verilens.app.config import Settings, get_settings
from verilens.app.errors import (
    ConfigurationError,
    MetadataExtractionError,
    ValidationError,
    VeriLensError,
)
from verilens.app.schemas.verification import (
    DepthFrame,
    DepthScore,
    MetadataSummary,
    Verdict,
    VerificationResult,
)
from verilens.app.utils.hashing import sha256_hex
from verilens.app.verification.depth_analyzer import score_depth_frame
from verilens.app.verification.metadata_extractor import (
    ExifMetadataExtractor,
    MetadataExtractor,
)

# Events (observational only)
from verilens.app.events import (
    EventEmitter,
    NullEventEmitter,
    VerificationEvent,
    VerificationEventType,
)

logger = logging.getLogger(__name__)

REQUIRED_METADATA_FIELDS = (
    "device_make",
    "device_model",
    "iso",
    "exposure_time",
    "f_number",
    "timestamp",
)

DEVICE_MATCH_BONUS = 0.1
GPS_BONUS = 0.05

# Combined scores are compared at this precision so that float noise
# never drops an exact threshold value into the lower tier.
_VERDICT_PRECISION = 6

_HEX_DIGEST = re.compile(r"[0-9a-f]+")


# ----------------------------------------------------------------------
# Scoring
# ----------------------------------------------------------------------

def _is_present(value: object) -> bool:
    # None, "" and 0 all read as "not recorded"
    return bool(value)


def compute_exif_confidence(
    metadata: MetadataSummary,
    expected_device_id: Optional[str] = None,
) -> float:
    """
    Fraction of required EXIF fields present, plus small bonuses.

    A field is present when it holds a non-empty, non-zero value. +0.1
    when ``expected_device_id`` occurs (case-insensitively) in the device
    model, +0.05 when both GPS coordinates are present. Clamped to 1 and
    rounded to 3 decimals.
    """
    populated = sum(
        1
        for field in REQUIRED_METADATA_FIELDS
        if _is_present(getattr(metadata, field))
    )
    score = populated / len(REQUIRED_METADATA_FIELDS)

    if (
        expected_device_id
        and metadata.device_model
        and expected_device_id.lower() in metadata.device_model.lower()
    ):
        score += DEVICE_MATCH_BONUS

    if _is_present(metadata.latitude) and _is_present(metadata.longitude):
        score += GPS_BONUS

    return min(round(score, 3), 1.0)


def resolve_verdict(
    exif_score: float,
    depth_confidence: Optional[float] = None,
    *,
    settings: Optional[Settings] = None,
) -> Verdict:
    """
    Combine the scores and map them onto a verdict.

    Thresholds are inclusive lower bounds.
    """
    settings = settings or get_settings()

    if depth_confidence is None:
        combined = exif_score
    else:
        combined = (
            exif_score * settings.exif_weight
            + depth_confidence * settings.depth_weight
        )
    combined = round(combined, _VERDICT_PRECISION)

    if combined >= settings.verdict_pass_threshold:
        return Verdict.PASS
    if combined >= settings.verdict_review_threshold:
        return Verdict.REVIEW
    return Verdict.FAIL


async def _emit(
    emitter: EventEmitter,
    verification_id: Optional[str],
    event_type: VerificationEventType,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    if verification_id is None:
        return
    try:
        await emitter.emit(
            VerificationEvent(
                verification_id=verification_id,
                event_type=event_type,
                details=details,
            )
        )
    except Exception:
        logger.exception(
            "Event emitter failed for %s (%s)",
            verification_id,
            event_type.value,
        )


# ----------------------------------------------------------------------
# Pipeline
# ----------------------------------------------------------------------

class VerificationPipeline:
    """
    Stateless orchestrator for photo verification.

    The pipeline owns step ordering and result assembly. The metadata
    extractor and checksum function are injected collaborators; a
    pipeline instance may serve any number of concurrent runs.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        extractor: Optional[MetadataExtractor] = None,
        hasher: Callable[[bytes], str] = sha256_hex,
    ) -> None:
        self._settings = settings or get_settings()
        self._extractor = extractor or ExifMetadataExtractor()
        self._hasher = hasher

    async def run(
        self,
        image_buffer: Optional[bytes],
        *,
        depth_frame: Optional[DepthFrame] = None,
        expected_device_id: Optional[str] = None,
        verification_id: Optional[str] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> VerificationResult:
        """
        Verify one captured photograph.

        Raises:
            ValidationError: empty buffer or malformed depth frame.
            MetadataExtractionError: the extractor could not read the image.
            ConfigurationError: the checksum function returned a non-hex value.
        """
        emitter = emitter or NullEventEmitter()

        await _emit(
            emitter,
            verification_id,
            VerificationEventType.VERIFICATION_STARTED,
        )

        try:
            result = await self._run(
                image_buffer,
                depth_frame=depth_frame,
                expected_device_id=expected_device_id,
            )
        except VeriLensError as exc:
            logger.warning("Verification aborted: %s (%s)", exc, exc.code)
            await _emit(
                emitter,
                verification_id,
                VerificationEventType.VERIFICATION_FAILED,
                exc.to_dict(),
            )
            raise

        await _emit(
            emitter,
            verification_id,
            VerificationEventType.VERIFICATION_COMPLETED,
            {
                "checksum": result.checksum,
                "verdict": result.verdict.value,
                "exif_score": result.exif_score,
            },
        )

        return result

    async def _run(
        self,
        image_buffer: Optional[bytes],
        *,
        depth_frame: Optional[DepthFrame],
        expected_device_id: Optional[str],
    ) -> VerificationResult:
        if not image_buffer:
            raise ValidationError("Image buffer required for verification")

        checksum = self._hasher(image_buffer)
        if not isinstance(checksum, str) or not _HEX_DIGEST.fullmatch(checksum):
            raise ConfigurationError(
                "Checksum function must return a lowercase hex digest",
                details={"checksum_type": type(checksum).__name__},
            )

        try:
            metadata = await self._extractor.extract(image_buffer)
        except VeriLensError:
            raise
        except Exception as exc:
            raise MetadataExtractionError(
                f"Failed to extract metadata: {exc}"
            ) from exc

        exif_score = compute_exif_confidence(metadata, expected_device_id)

        depth_score: Optional[DepthScore] = None
        if depth_frame is not None:
            depth_score = score_depth_frame(
                depth_frame,
                variance_scale=self._settings.depth_variance_scale,
            )

        verdict = resolve_verdict(
            exif_score,
            depth_score.confidence if depth_score is not None else None,
            settings=self._settings,
        )

        logger.info(
            "Verification completed: checksum=%s verdict=%s exif_score=%s "
            "depth_confidence=%s",
            checksum,
            verdict.value,
            exif_score,
            depth_score.confidence if depth_score is not None else None,
        )

        return VerificationResult(
            checksum=checksum,
            metadata=metadata,
            exif_score=exif_score,
            depth_score=depth_score,
            verdict=verdict,
        )


async def run_verification(
    image_buffer: Optional[bytes],
    *,
    depth_frame: Optional[DepthFrame] = None,
    expected_device_id: Optional[str] = None,
) -> VerificationResult:
    """Run the default pipeline (EXIF extractor, SHA-256, env settings)."""
    pipeline = VerificationPipeline()
    return await pipeline.run(
        image_buffer,
        depth_frame=depth_frame,
        expected_device_id=expected_device_id,
    )
