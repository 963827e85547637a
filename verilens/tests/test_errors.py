import pytest

from verilens.app.errors import (
    ApiRequestError,
    BlockchainSigningError,
    ConfigurationError,
    MetadataExtractionError,
    RetryExhaustedError,
    ValidationError,
    VeriLensError,
)


@pytest.mark.parametrize(
    "error_cls, code",
    [
        (ValidationError, "VALIDATION_ERROR"),
        (MetadataExtractionError, "METADATA_EXTRACTION_FAILED"),
        (ConfigurationError, "CONFIGURATION_ERROR"),
        (BlockchainSigningError, "BLOCKCHAIN_SIGNING_FAILED"),
        (ApiRequestError, "API_REQUEST_FAILED"),
    ],
)
def test_codes_are_stable(error_cls, code):
    error = error_cls("boom")

    assert isinstance(error, VeriLensError)
    assert error.code == code
    assert error.to_dict() == {"code": code, "message": "boom"}


def test_to_dict_reports_cause_type_only():
    try:
        try:
            raise KeyError("secret-value")
        except KeyError as exc:
            raise ConfigurationError(
                "Secret missing",
                details={"name": "signingKey"},
            ) from exc
    except ConfigurationError as error:
        payload = error.to_dict()

    assert payload == {
        "code": "CONFIGURATION_ERROR",
        "message": "Secret missing",
        "details": {"name": "signingKey"},
        "cause": "KeyError",
    }


def test_retry_exhausted_carries_attempts():
    error = RetryExhaustedError("exhausted", attempts=6)

    assert error.attempts == 6
    assert error.code == "BLOCKCHAIN_SIGNING_FAILED"
