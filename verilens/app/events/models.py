from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class VerificationEventType(str, Enum):
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"


class VerificationEvent(BaseModel):
    """
    One step of a verification run, as seen by listeners.

    ``details`` carries the checksum and verdict on completion, or the
    error's ``to_dict()`` on failure. Verdicts never depend on events.
    """

    event_id: UUID = Field(default_factory=uuid4)
    verification_id: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: VerificationEventType
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
