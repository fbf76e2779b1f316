"""Adapter layer: channel senders, queue and receive loop.

The Kafka runtime lives in `notifier.adapters.kafka_runtime` and is imported
explicitly; it depends on the application layer.
"""

from .fake_senders import ConsoleSender, console_senders
from .queue import DeadLetterPublisher, InMemoryQueue, MessageQueue, QueueMessage
from .receive_loop import FailurePolicy, LoopState, ReceiveLoop
from .smtp_sender import EmailSender, LoginAuth, PlainAuth
from .whatsapp_sender import WhatsAppSender, fetch_oauth_token

__all__ = [
    "ConsoleSender",
    "DeadLetterPublisher",
    "EmailSender",
    "FailurePolicy",
    "InMemoryQueue",
    "LoginAuth",
    "LoopState",
    "MessageQueue",
    "PlainAuth",
    "QueueMessage",
    "ReceiveLoop",
    "WhatsAppSender",
    "console_senders",
    "fetch_oauth_token",
]
