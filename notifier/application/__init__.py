"""Application layer: dispatch and message processing use-cases."""

from .dispatch import EMAIL_SUBJECT, dispatch_event
from .process import process_message

__all__ = [
    "EMAIL_SUBJECT",
    "dispatch_event",
    "process_message",
]
