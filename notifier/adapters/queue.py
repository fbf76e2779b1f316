"""Queue collaborator contract and an in-process implementation.

Mental model refresher:
- The receive loop only needs three operations: receive one message with a
  bounded wait, acknowledge it, or abandon it for redelivery.
- KafkaQueue (kafka_runtime.py) is the production implementation.
- InMemoryQueue backs local demos and tests; abandon puts the message back
  at the head so the next receive redelivers it.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Protocol


@dataclass
class QueueMessage:
    message_id: str
    body: bytes
    delivery_count: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)


class MessageQueue(Protocol):
    def receive_one(self, timeout: float) -> Optional[QueueMessage]: ...

    def acknowledge(self, message: QueueMessage) -> None: ...

    def abandon(self, message: QueueMessage) -> None: ...

    def close(self) -> None: ...


class DeadLetterPublisher(Protocol):
    def publish(self, message: QueueMessage, reason: str) -> bool: ...


class InMemoryQueue:
    def __init__(self, messages: Iterable[QueueMessage] = ()) -> None:
        self._pending: deque[QueueMessage] = deque(messages)
        self.acknowledged: list[QueueMessage] = []
        self.abandoned: list[QueueMessage] = []
        self.closed = False

    def put(self, message_id: str, body: bytes | str) -> QueueMessage:
        raw = body.encode("utf-8") if isinstance(body, str) else body
        message = QueueMessage(message_id=message_id, body=raw)
        self._pending.append(message)
        return message

    def receive_one(self, timeout: float) -> Optional[QueueMessage]:
        _ = timeout
        if not self._pending:
            return None
        return self._pending.popleft()

    def acknowledge(self, message: QueueMessage) -> None:
        self.acknowledged.append(message)

    def abandon(self, message: QueueMessage) -> None:
        self.abandoned.append(message)
        self._pending.appendleft(replace(message, delivery_count=message.delivery_count + 1))

    def close(self) -> None:
        self.closed = True

    def __len__(self) -> int:
        return len(self._pending)
