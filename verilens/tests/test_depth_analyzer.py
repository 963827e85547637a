import pytest

from verilens.app.errors import ValidationError
from verilens.app.schemas.verification import DepthFrame
from verilens.app.verification.depth_analyzer import score_depth_frame


def test_constant_frame_has_full_confidence():
    frame = DepthFrame(width=3, height=2, values=[42.0] * 6)

    score = score_depth_frame(frame)

    assert score.mean == 42.0
    assert score.variance == 0.0
    assert score.confidence == 1.0


def test_population_variance_maps_linearly_onto_confidence():
    frame = DepthFrame(width=2, height=2, values=[10, 20, 30, 40])

    score = score_depth_frame(frame)

    # mean 25, population variance (225 + 25 + 25 + 225) / 4
    assert score.mean == 25.0
    assert score.variance == 125.0
    assert score.confidence == 0.875


def test_confidence_clamps_at_zero_for_large_variance():
    frame = DepthFrame(width=2, height=1, values=[0, 10_000])

    score = score_depth_frame(frame)

    assert score.variance == 25_000_000.0
    assert score.confidence == 0.0


def test_variance_scale_is_tunable():
    frame = DepthFrame(width=2, height=2, values=[10, 20, 30, 40])

    score = score_depth_frame(frame, variance_scale=250)

    assert score.confidence == 0.5


def test_confidence_is_rounded_to_four_decimals():
    frame = DepthFrame(width=3, height=1, values=[0, 1, 3])

    score = score_depth_frame(frame)

    # variance = 14/9
    assert score.confidence == round(1 - (14 / 9) / 1000, 4)


@pytest.mark.parametrize(
    "width,height,values",
    [
        (2, 2, [1.0, 2.0, 3.0]),
        (2, 2, [1.0, 2.0, 3.0, 4.0, 5.0]),
        (1, 1, []),
        (4, 4, [0.0] * 4),
    ],
)
def test_dimension_mismatch_always_fails_validation(width, height, values):
    frame = DepthFrame(width=width, height=height, values=values)

    with pytest.raises(ValidationError) as exc_info:
        score_depth_frame(frame)

    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.details["expected_samples"] == width * height


def test_scoring_is_deterministic():
    frame = DepthFrame(width=2, height=3, values=[5, 1, 9, 3, 3, 7])

    assert score_depth_frame(frame) == score_depth_frame(frame)


@pytest.mark.parametrize(
    "values",
    [
        [1.0, float("nan")],
        [float("inf"), 2.0],
        [-float("inf"), float("inf")],
    ],
)
def test_non_finite_samples_fail_validation(values):
    frame = DepthFrame(width=1, height=2, values=values)

    with pytest.raises(ValidationError, match="non-finite"):
        score_depth_frame(frame)


def test_overflowing_variance_fails_validation():
    frame = DepthFrame(width=2, height=1, values=[-1e308, 1e308])

    with pytest.raises(ValidationError, match="not finite"):
        score_depth_frame(frame)
