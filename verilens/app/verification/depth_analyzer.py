"""
Depth-map confidence scoring.

The population variance of the depth samples is mapped linearly onto
[0, 1]: ``confidence = 1 - min(variance / variance_scale, 1)``. A
constant frame scores 1.0 and the score reaches 0.0 once the variance
hits ``variance_scale``. The scale is an empirical constant and is
exposed as configuration rather than derived.

Pure functions only. No I/O, no shared state.
"""

from __future__ import annotations

import math

from verilens.app.errors import ValidationError
from verilens.app.schemas.verification import DepthFrame, DepthScore

DEFAULT_VARIANCE_SCALE = 1000.0


def score_depth_frame(
    frame: DepthFrame,
    *,
    variance_scale: float = DEFAULT_VARIANCE_SCALE,
) -> DepthScore:
    """
    Score a depth frame.

    Raises:
        ValidationError: if ``len(frame.values) != frame.width * frame.height``,
            or a sample (or the resulting variance) is not finite.
    """
    expected = frame.width * frame.height
    if len(frame.values) != expected:
        raise ValidationError(
            "Depth frame dimensions mismatch",
            details={
                "width": frame.width,
                "height": frame.height,
                "expected_samples": expected,
                "actual_samples": len(frame.values),
            },
        )

    if not all(math.isfinite(value) for value in frame.values):
        raise ValidationError("Depth frame contains non-finite samples")

    if variance_scale <= 0:
        raise ValidationError("Depth variance scale must be positive")

    count = len(frame.values)
    mean = sum(frame.values) / count
    # Population variance
    deviations = [value - mean for value in frame.values]
    variance = sum(d * d for d in deviations) / count
    if not math.isfinite(variance):
        raise ValidationError("Depth frame variance is not finite")

    normalized_variance = min(variance / variance_scale, 1.0)
    confidence = round(1.0 - normalized_variance, 4)

    return DepthScore(
        variance=variance,
        mean=mean,
        confidence=confidence,
    )
