"""
Verification schemas.

Defines the records produced and consumed by the verification pipeline:
the EXIF-derived metadata summary, the depth frame and its score, and the
final VerificationResult.

All models are immutable. A VerificationResult has no lifecycle beyond
the call that produced it; persistence is the caller's decision.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Verdict(str, Enum):
    """
    Three-way plausibility classification of a photograph.

    This is a heuristic signal. It is NOT a cryptographic proof of
    authenticity.
    """

    PASS = "pass"
    REVIEW = "review"
    FAIL = "fail"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class MetadataSummary(BaseModel):
    """
    Flat record of the EXIF fields the pipeline cares about.

    Every field is optional; absence is represented as None.
    """

    device_make: Optional[str] = None
    device_model: Optional[str] = None
    iso: Optional[int] = None
    exposure_time: Optional[float] = None
    f_number: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    timestamp: Optional[str] = Field(
        None,
        description="Capture time as an ISO 8601 string",
    )
    orientation: Optional[int] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class DepthFrame(BaseModel):
    """
    A single depth map in row-major order.

    ``len(values) == width * height`` is enforced by the depth scorer,
    not here, so that a mismatch surfaces as a VeriLens ValidationError.
    """

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    values: List[float]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

class DepthScore(BaseModel):
    variance: float
    mean: float
    confidence: float = Field(..., ge=0.0, le=1.0)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class VerificationResult(BaseModel):
    """
    Outcome of one pipeline invocation.

    ``checksum`` is the lowercase hex digest of the image (SHA-256 unless
    the pipeline was given another checksum function) and is the exact
    value later handed to the signing client.
    """

    checksum: str = Field(..., pattern=r"^[0-9a-f]+$")
    metadata: MetadataSummary
    exif_score: float = Field(..., ge=0.0, le=1.0)
    depth_score: Optional[DepthScore] = None
    verdict: Verdict

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
