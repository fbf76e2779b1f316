"""Message processing use-case: raw bytes in, one verdict out."""

from __future__ import annotations

import logging
from typing import Mapping

from ..domain.event import ChannelType
from ..domain.payload import decode_event_payload
from ..errors import MalformedPayloadError, PartialFailureError
from ..types import ChannelSender, ProcessingResult
from .dispatch import dispatch_event

logger = logging.getLogger(__name__)


def process_message(
    raw: bytes | str,
    senders: Mapping[ChannelType, ChannelSender],
) -> ProcessingResult:
    """Decode one message and dispatch it.

    Returns the processing result on success (including the deliberate skip
    of empty events). Raises MalformedPayloadError for undecodable input and
    PartialFailureError when any requested channel failed.
    """
    try:
        event = decode_event_payload(raw)
    except MalformedPayloadError as exc:
        logger.error("[MALFORMED] error=%s", exc)
        raise

    logger.info(
        "[PROCESSING] user_id=%s channels=%s",
        event.user_id,
        ",".join(channel.type for channel in event.channels),
    )

    if event.is_empty:
        logger.info(
            "[SKIP] user_id=%s message has no body or channels", event.user_id
        )
        return {
            "user_id": event.user_id,
            "status": "skipped",
            "channel_results": [],
            "all_requested_succeeded": True,
        }

    try:
        result = dispatch_event(event, senders)
    except PartialFailureError as exc:
        logger.error(
            "[PARTIAL FAILURE] user_id=%s failed_channels=%s",
            event.user_id,
            ",".join(exc.failed_channels),
        )
        raise

    logger.info("[PROCESSED] user_id=%s all notifications sent", event.user_id)
    return result
