"""Domain layer: event model, channel kinds and envelope decoding."""

from .event import ChannelType, NotificationChannel, NotificationEvent
from .payload import decode_event_payload, parse_event_payload

__all__ = [
    "ChannelType",
    "NotificationChannel",
    "NotificationEvent",
    "decode_event_payload",
    "parse_event_payload",
]
