from .models import VerificationEvent, VerificationEventType
from .emitter import EventEmitter, NullEventEmitter

__all__ = [
    "VerificationEvent",
    "VerificationEventType",
    "EventEmitter",
    "NullEventEmitter",
]
