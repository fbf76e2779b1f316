"""Shared type aliases for the notifier package."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

ChannelResult = dict[str, Any]
ProcessingResult = dict[str, Any]
LoopResult = dict[str, Any]

SleepFn = Callable[[float], None]
StopFn = Callable[[], bool]


class ChannelSender(Protocol):
    """Anything that can deliver one message to one contact."""

    def send(self, contact: str, subject: Optional[str], body: str) -> None: ...
