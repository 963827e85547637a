from __future__ import annotations

from typing import Protocol

from verilens.app.events.models import VerificationEvent


class EventEmitter(Protocol):
    """
    Sink for verification events.

    The pipeline logs and drops exceptions raised by ``emit``, so a
    broken listener cannot fail a verification.
    """

    async def emit(self, event: VerificationEvent) -> None:
        ...


class NullEventEmitter:
    """Discards every event. Default when the caller passes no emitter."""

    async def emit(self, event: VerificationEvent) -> None:
        return
