"""Fake sender adapters for local smoke runs.

Mental model refresher:
- This is outbound adapter code with the same `send` shape as the real
  SMTP and WhatsApp senders.
- The dispatcher calls whatever is registered for a channel kind; it does not
  know whether a provider or the console is underneath.
"""

from __future__ import annotations

from typing import Optional

from ..domain.event import ChannelType
from ..types import ChannelSender


class ConsoleSender:
    def __init__(self, label: str) -> None:
        self.label = label

    def send(self, contact: str, subject: Optional[str], body: str) -> None:
        print(f"[{self.label}]")
        print(f"to={contact}")
        if subject is not None:
            print(f"subject={subject}")
        print(f"body={body}")


def console_senders() -> dict[ChannelType, ChannelSender]:
    return {
        ChannelType.EMAIL: ConsoleSender("EMAIL"),
        ChannelType.WHATSAPP: ConsoleSender("WHATSAPP"),
    }
