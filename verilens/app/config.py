"""
Centralized configuration management for the VeriLens core.

Pydantic v2 settings management to enforce strict validation and
fast-failure on invalid configuration. These values are the only tuning
surface of the verification heuristics and the signing retry policy.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

UnitInterval = Annotated[
    float,
    Field(ge=0.0, le=1.0),
]

EnvVarName = Annotated[
    str,
    Field(min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$"),
]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment (``VERILENS_*``).

    Fails fast at construction if any threshold, weight or limit is
    out of range.
    """

    # ---------------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------------

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ---------------------------------------------------------------------
    # Signing retry policy
    # ---------------------------------------------------------------------

    retry_max_retries: Annotated[
        int,
        Field(
            default=5,
            ge=0,
            description="Retries allowed per signing job after the first attempt",
        ),
    ]

    retry_base_delay_ms: Annotated[
        int,
        Field(
            default=500,
            ge=0,
            description="Base backoff interval; also bounds the random jitter",
        ),
    ]

    retry_attempt_timeout_seconds: Annotated[
        Optional[float],
        Field(
            default=None,
            gt=0,
            description=(
                "Optional upper bound for a single handler attempt. "
                "Unset means an attempt may run indefinitely."
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Verdict heuristics
    # ---------------------------------------------------------------------

    verdict_pass_threshold: Annotated[UnitInterval, Field(default=0.8)]
    verdict_review_threshold: Annotated[UnitInterval, Field(default=0.5)]

    depth_variance_scale: Annotated[
        float,
        Field(
            default=1000.0,
            gt=0,
            description="Variance at which depth confidence reaches zero",
        ),
    ]

    exif_weight: Annotated[UnitInterval, Field(default=0.6)]
    depth_weight: Annotated[UnitInterval, Field(default=0.4)]

    # ---------------------------------------------------------------------
    # Secrets and key material
    # ---------------------------------------------------------------------

    signing_key_secret_name: Annotated[
        str,
        Field(default="blockchainPrivateKey", min_length=1),
    ]

    secrets_path: Annotated[
        Path,
        Field(
            default=Path("config") / "secrets.json",
            description="JSON secrets file consulted after the environment",
        ),
    ]

    secret_decryption_key_env: EnvVarName = "SECRET_DECRYPTION_KEY"

    # ---------------------------------------------------------------------
    # Captured image encryption
    # ---------------------------------------------------------------------

    image_encryption_key_env: EnvVarName = "IMAGE_ENCRYPTION_KEY"

    encryption_iv_length: Annotated[int, Field(default=12, ge=12, le=16)]

    encrypted_image_dir: Annotated[
        Path,
        Field(default=Path("storage") / "encrypted"),
    ]

    # ---------------------------------------------------------------------
    # Outbound API
    # ---------------------------------------------------------------------

    api_base_url: Annotated[
        AnyHttpUrl,
        Field(default="http://localhost:3000"),
    ]

    api_request_timeout_ms: Annotated[int, Field(default=10_000, gt=0)]
    api_max_retries: Annotated[int, Field(default=3, ge=0)]

    model_config = SettingsConfigDict(
        env_prefix="VERILENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    @model_validator(mode="after")
    def review_threshold_below_pass(self) -> "Settings":
        if self.verdict_review_threshold > self.verdict_pass_threshold:
            raise ValueError(
                "verdict_review_threshold must not exceed "
                "verdict_pass_threshold"
            )
        return self


# -------------------------------------------------------------------------
# Settings Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return Settings()
