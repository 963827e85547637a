import pytest
from pydantic import ValidationError as PydanticValidationError

from verilens.app.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.retry_max_retries == 5
    assert settings.retry_base_delay_ms == 500
    assert settings.retry_attempt_timeout_seconds is None
    assert settings.verdict_pass_threshold == 0.8
    assert settings.verdict_review_threshold == 0.5
    assert settings.exif_weight == 0.6
    assert settings.depth_weight == 0.4
    assert settings.signing_key_secret_name == "blockchainPrivateKey"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("VERILENS_RETRY_MAX_RETRIES", "2")
    monkeypatch.setenv("VERILENS_VERDICT_PASS_THRESHOLD", "0.9")

    settings = Settings()

    assert settings.retry_max_retries == 2
    assert settings.verdict_pass_threshold == 0.9


def test_review_threshold_above_pass_is_rejected():
    with pytest.raises(PydanticValidationError):
        Settings(verdict_pass_threshold=0.4, verdict_review_threshold=0.6)


@pytest.mark.parametrize(
    "overrides",
    [
        {"retry_max_retries": -1},
        {"exif_weight": 1.5},
        {"depth_variance_scale": 0},
        {"encryption_iv_length": 8},
        {"retry_attempt_timeout_seconds": 0},
    ],
)
def test_out_of_range_values_fail_fast(overrides):
    with pytest.raises(PydanticValidationError):
        Settings(**overrides)


def test_settings_are_immutable():
    settings = Settings()

    with pytest.raises(PydanticValidationError):
        settings.retry_max_retries = 1
