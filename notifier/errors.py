"""Error taxonomy for the notification pipeline.

Mental model refresher:
- Sender errors describe one failed channel send.
- The dispatcher never lets a sender error escape; it folds them into a
  PartialFailureError for the whole event.
- MalformedPayloadError is raised before any channel is touched.
"""

from __future__ import annotations

from typing import Any


class NotificationError(Exception):
    """Base class for every error raised by the notifier package."""


class MalformedPayloadError(NotificationError):
    """Raw message bytes are not a valid notification event."""


class SendError(NotificationError):
    """A single channel send failed."""

    retryable = False


class NotConfiguredError(SendError):
    """Channel transport credentials are absent or incomplete."""


class InvalidArgumentError(SendError):
    """Caller supplied an empty contact, body or sender identity."""


class TransportFailureError(SendError):
    """Network or remote-service failure during an actual send."""

    retryable = True


class AuthFailureError(SendError):
    """Credential exchange failed before the send could be attempted."""

    retryable = True


class PartialFailureError(NotificationError):
    """One or more requested channels failed within a single dispatch."""

    def __init__(self, result: dict[str, Any]) -> None:
        self.result = result
        failed = [
            item["channel"]
            for item in result.get("channel_results", [])
            if item["requested"] and not item["success"]
        ]
        self.failed_channels = failed
        super().__init__(f"failed to send one or more notifications: {', '.join(failed)}")
