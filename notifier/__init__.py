"""Queue-driven notification dispatcher (email over SMTP, WhatsApp over HTTP)."""

from .application import EMAIL_SUBJECT, dispatch_event, process_message
from .adapters import (
    ConsoleSender,
    EmailSender,
    FailurePolicy,
    InMemoryQueue,
    LoopState,
    QueueMessage,
    ReceiveLoop,
    WhatsAppSender,
)
from .adapters.kafka_runtime import (
    build_senders,
    publish_notification_event,
    run_worker_forever,
)
from .config import EmailConfig, SenderConfig, WhatsAppConfig, WorkerConfig
from .domain import (
    ChannelType,
    NotificationChannel,
    NotificationEvent,
    decode_event_payload,
)
from .errors import (
    AuthFailureError,
    InvalidArgumentError,
    MalformedPayloadError,
    NotConfiguredError,
    NotificationError,
    PartialFailureError,
    SendError,
    TransportFailureError,
)

__all__ = [
    "AuthFailureError",
    "ChannelType",
    "ConsoleSender",
    "EMAIL_SUBJECT",
    "EmailConfig",
    "EmailSender",
    "FailurePolicy",
    "InMemoryQueue",
    "InvalidArgumentError",
    "LoopState",
    "MalformedPayloadError",
    "NotConfiguredError",
    "NotificationChannel",
    "NotificationError",
    "NotificationEvent",
    "PartialFailureError",
    "QueueMessage",
    "ReceiveLoop",
    "SendError",
    "SenderConfig",
    "TransportFailureError",
    "WhatsAppConfig",
    "WhatsAppSender",
    "WorkerConfig",
    "build_senders",
    "decode_event_payload",
    "dispatch_event",
    "process_message",
    "publish_notification_event",
    "run_worker_forever",
]
