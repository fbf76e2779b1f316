"""Application orchestration for multi-channel delivery.

Mental model refresher:
- Application layer coordinates use-case flow across channel senders.
- In this project it:
  1) walks the event's channels in the order they were requested
  2) calls the sender registered for each known channel kind
  3) aggregates a single success signal used for acknowledge decisions
- One failed channel never stops the others; every requested channel is
  attempted exactly once per dispatch.
"""

from __future__ import annotations

import logging
from typing import Mapping

from ..domain.event import ChannelType, NotificationChannel, NotificationEvent
from ..errors import NotConfiguredError, PartialFailureError
from ..types import ChannelResult, ChannelSender, ProcessingResult

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Notification"


def dispatch_event(
    event: NotificationEvent,
    senders: Mapping[ChannelType, ChannelSender],
) -> ProcessingResult:
    """Deliver one event to all of its channels.

    Raises PartialFailureError (carrying the full result) when one or more
    requested channels failed.
    """
    channel_results = [
        _send_to_channel(event, channel, senders) for channel in event.channels
    ]
    all_requested_succeeded = all(
        (not item["requested"]) or item["success"] for item in channel_results
    )

    result: ProcessingResult = {
        "user_id": event.user_id,
        "status": "dispatched" if all_requested_succeeded else "partial_failure",
        "channel_results": channel_results,
        "all_requested_succeeded": all_requested_succeeded,
    }
    if not all_requested_succeeded:
        raise PartialFailureError(result)
    return result


def _send_to_channel(
    event: NotificationEvent,
    channel: NotificationChannel,
    senders: Mapping[ChannelType, ChannelSender],
) -> ChannelResult:
    kind = channel.kind
    if kind is ChannelType.UNKNOWN:
        logger.info(
            "[SKIP] user_id=%s unknown notification type %r", event.user_id, channel.type
        )
        return _channel_result(channel, requested=False, success=True)

    subject = EMAIL_SUBJECT if kind is ChannelType.EMAIL else None
    try:
        sender = senders.get(kind)
        if sender is None:
            raise NotConfiguredError(f"no sender registered for {kind.value}")
        sender.send(channel.contact, subject, event.notification_message)
    except Exception as exc:
        logger.error(
            "[SEND FAILED] user_id=%s channel=%s contact=%s error_type=%s error=%s",
            event.user_id,
            kind.value,
            channel.contact,
            type(exc).__name__,
            exc,
        )
        return _channel_result(channel, requested=True, success=False, error=exc)

    logger.info(
        "[SENT] user_id=%s channel=%s contact=%s", event.user_id, kind.value, channel.contact
    )
    return _channel_result(channel, requested=True, success=True)


def _channel_result(
    channel: NotificationChannel,
    *,
    requested: bool,
    success: bool,
    error: Exception | None = None,
) -> ChannelResult:
    return {
        "channel": channel.type,
        "contact": channel.contact,
        "requested": requested,
        "success": success,
        "error": str(error) if error is not None else None,
        "error_type": type(error).__name__ if error is not None else None,
    }
