from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SignatureResult(BaseModel):
    """
    A completed signature over a content digest.

    Both values are lowercase hex; base64 is never used for them.
    """

    digest: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    signature_hex: str = Field(..., pattern=r"^[0-9a-f]+$")
    algorithm: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
