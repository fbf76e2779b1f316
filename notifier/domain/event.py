"""Notification event model.

Mental model refresher:
- Domain modules hold the shapes the rest of the pipeline agrees on.
- Channel tags are matched case-sensitively against the upper-case names
  below. Anything else is kept as sent but classified as UNKNOWN, which the
  dispatcher skips.
- JSON decoding lives in payload.py; nothing here knows about queues or
  transports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChannelType(Enum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_tag(cls, tag: str) -> "ChannelType":
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class NotificationChannel:
    type: str
    contact: str

    @property
    def kind(self) -> ChannelType:
        return ChannelType.from_tag(self.type)


@dataclass(frozen=True)
class NotificationEvent:
    user_id: str
    notification_message: str
    channels: tuple[NotificationChannel, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to deliver (no body or no channels)."""
        return not self.notification_message or not self.channels
