"""Notification envelope decoding.

Mental model refresher:
- Translates a raw message body into the NotificationEvent the application
  layer works with. Queue adapters hand over bytes; nothing here knows which
  queue they came from.
- It validates structure only. Empty messages, empty channel lists and
  unknown channel tags are all structurally valid; deciding what to do with
  them belongs to the application layer.
- A bare JSON `null` is the empty envelope, not a malformed one.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from ..errors import MalformedPayloadError
from .event import NotificationChannel, NotificationEvent


def decode_event_payload(raw: bytes | str) -> NotificationEvent:
    """Decode one raw message body into a NotificationEvent.

    Raises MalformedPayloadError for anything that is not a JSON object
    shaped like the notification envelope.
    """
    payload = _deserialize_json_object(raw)
    return parse_event_payload(payload)


def parse_event_payload(payload: Mapping[str, Any]) -> NotificationEvent:
    """Map an already-decoded envelope dict into a NotificationEvent."""
    channels_raw = payload.get("channels")
    if channels_raw is None:
        channels_raw = []
    if not isinstance(channels_raw, list):
        raise MalformedPayloadError("channels must be a JSON array")

    channels = tuple(
        _parse_channel(item, index) for index, item in enumerate(channels_raw)
    )
    return NotificationEvent(
        user_id=_as_str(payload.get("userId"), "userId"),
        notification_message=_as_str(
            payload.get("notificationMessage"), "notificationMessage"
        ),
        channels=channels,
    )


def _parse_channel(item: Any, index: int) -> NotificationChannel:
    if not isinstance(item, Mapping):
        raise MalformedPayloadError(f"channels[{index}] must be a JSON object")
    return NotificationChannel(
        type=_as_str(item.get("type"), f"channels[{index}].type"),
        contact=_as_str(item.get("contact"), f"channels[{index}].contact"),
    )


def _deserialize_json_object(raw: bytes | str) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayloadError(f"payload is not valid UTF-8: {exc}") from exc
    elif isinstance(raw, str):
        text = raw
    else:
        raise MalformedPayloadError(f"Unsupported payload type: {type(raw).__name__}")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"failed to parse message body: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise MalformedPayloadError("payload must decode to a JSON object")
    return parsed


def _as_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedPayloadError(
            f"{field_name} must be a string, got {type(value).__name__}"
        )
    return value
