#!/usr/bin/env python3
"""Run the receive loop against an in-memory queue (no Kafka needed)."""

from __future__ import annotations

import json
import sys
from functools import partial
from pathlib import Path
from typing import Any, Optional

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notifier import ChannelType, InMemoryQueue, ReceiveLoop, process_message  # noqa: E402
from notifier.adapters.fake_senders import ConsoleSender  # noqa: E402
from notifier.config import configure_logging  # noqa: E402
from notifier.errors import TransportFailureError  # noqa: E402


class MaybeFailSender(ConsoleSender):
    def __init__(self, label: str, failing_contact: str) -> None:
        super().__init__(label)
        self.failing_contact = failing_contact

    def send(self, contact: str, subject: Optional[str], body: str) -> None:
        if contact == self.failing_contact:
            raise TransportFailureError(f"{self.label.lower()} provider unavailable")
        super().send(contact, subject, body)


def main() -> int:
    configure_logging()
    queue = InMemoryQueue()
    for message_id, body in sample_messages():
        queue.put(message_id, body)

    senders = {
        ChannelType.EMAIL: MaybeFailSender("EMAIL", "fail-email@example.com"),
        ChannelType.WHATSAPP: MaybeFailSender("WHATSAPP", "+15555559999"),
    }
    loop = ReceiveLoop(
        queue,
        partial(process_message, senders=senders),
        receive_timeout=0.1,
        sleep=lambda _seconds: None,
    )

    results = []
    while len(queue):
        results.append(loop.poll_once())

    print("")
    print("[QUEUE SUMMARY]")
    for result in results:
        print(
            f"message_id={result['message_id']} state={result['state'].value} "
            f"status={result['status']} error={result['error']}"
        )

    print("")
    print(f"acknowledged={[item.message_id for item in queue.acknowledged]}")
    print(f"abandoned={[item.message_id for item in queue.abandoned]}")
    return 0


def sample_messages() -> list[tuple[str, str]]:
    events: list[tuple[str, Any]] = [
        (
            "msg-100",
            {
                "userId": "user-100",
                "notificationMessage": "Payment received.",
                "channels": [
                    {"type": "EMAIL", "contact": "person@example.com"},
                    {"type": "WHATSAPP", "contact": "+15555550123"},
                ],
            },
        ),
        (
            "msg-101",
            {
                "userId": "user-101",
                "notificationMessage": "",
                "channels": [{"type": "EMAIL", "contact": "person@example.com"}],
            },
        ),
        (
            "msg-102",
            {
                "userId": "user-102",
                "notificationMessage": "Transfer failed.",
                "channels": [
                    {"type": "EMAIL", "contact": "fail-email@example.com"},
                    {"type": "WHATSAPP", "contact": "+15555550123"},
                    {"type": "PIGEON", "contact": "rooftop"},
                ],
            },
        ),
    ]
    messages = [(message_id, json.dumps(event)) for message_id, event in events]
    messages.append(("msg-103", '{"invalid json"}'))
    return messages


if __name__ == "__main__":
    sys.exit(main())
