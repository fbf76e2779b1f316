"""Kafka transport adapters for publishing and consuming notification events.

Mental model refresher:
- This module is transport glue to Kafka itself.
- KafkaQueue maps the receive/acknowledge/abandon contract onto a consumer
  with manual offset commits:
  - receive: poll at most one record
  - acknowledge: commit offset + 1
  - abandon: seek back to the record's offset so the next poll redelivers it
- Business/channel logic still lives in domain/application layers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import partial
import json
import logging
from typing import Any, Mapping, Optional

from ..application.process import process_message
from ..config import SenderConfig, WorkerConfig
from ..domain.event import ChannelType
from ..types import ChannelSender
from .queue import QueueMessage
from .receive_loop import FailurePolicy, ReceiveLoop
from .smtp_sender import EmailSender
from .whatsapp_sender import WhatsAppSender

logger = logging.getLogger(__name__)


class KafkaQueue:
    def __init__(
        self,
        consumer: Any,
        *,
        topic_partition_type: Any,
        offset_and_metadata_type: Any,
    ) -> None:
        self._consumer = consumer
        self._topic_partition_type = topic_partition_type
        self._offset_and_metadata_type = offset_and_metadata_type

    @classmethod
    def from_config(cls, config: WorkerConfig) -> "KafkaQueue":
        KafkaConsumer, _KafkaProducer, TopicPartition, OffsetAndMetadata = _import_kafka_python()
        consumer = KafkaConsumer(
            config.topic,
            bootstrap_servers=list(config.bootstrap_servers),
            group_id=config.group_id,
            enable_auto_commit=False,
            auto_offset_reset=config.auto_offset_reset,
            max_poll_records=1,
        )
        return cls(
            consumer,
            topic_partition_type=TopicPartition,
            offset_and_metadata_type=OffsetAndMetadata,
        )

    def receive_one(self, timeout: float) -> Optional[QueueMessage]:
        batches = self._consumer.poll(timeout_ms=int(timeout * 1000), max_records=1)
        for records in batches.values():
            for record in records:
                return _queue_message_from_record(record)
        return None

    def acknowledge(self, message: QueueMessage) -> None:
        topic_partition, offset = self._position(message)
        offsets = {
            topic_partition: _offset_and_metadata(self._offset_and_metadata_type, offset + 1)
        }
        self._consumer.commit(offsets=offsets)

    def abandon(self, message: QueueMessage) -> None:
        topic_partition, offset = self._position(message)
        self._consumer.seek(topic_partition, offset)

    def close(self) -> None:
        self._consumer.close()

    def _position(self, message: QueueMessage) -> tuple[Any, int]:
        metadata = message.metadata
        topic_partition = self._topic_partition_type(metadata["topic"], int(metadata["partition"]))
        return topic_partition, int(metadata["offset"])


class KafkaDeadLetterPublisher:
    def __init__(self, producer: Any, *, topic: str, send_timeout_seconds: float = 10.0) -> None:
        self._producer = producer
        self._topic = topic
        self._send_timeout_seconds = send_timeout_seconds

    def publish(self, message: QueueMessage, reason: str) -> bool:
        dlq_payload = _build_dlq_payload(message, failure_reason=reason)
        try:
            future = self._producer.send(self._topic, value=dlq_payload)
            metadata = future.get(timeout=self._send_timeout_seconds)
        except Exception as exc:
            logger.error(
                "[DLQ ERROR] message_id=%s reason=%s error=%s", message.message_id, reason, exc
            )
            return False

        logger.warning(
            "[DLQ] message_id=%s dlq_topic=%s dlq_partition=%s dlq_offset=%s reason=%s",
            message.message_id,
            metadata.topic,
            metadata.partition,
            metadata.offset,
            reason,
        )
        return True

    def close(self) -> None:
        self._producer.flush(timeout=self._send_timeout_seconds)
        self._producer.close()


def build_senders(config: SenderConfig) -> dict[ChannelType, ChannelSender]:
    return {
        ChannelType.EMAIL: EmailSender(config.email),
        ChannelType.WHATSAPP: WhatsAppSender(config.whatsapp),
    }


def publish_notification_event(
    payload: Mapping[str, Any],
    *,
    topic: str | None = None,
    config: WorkerConfig | None = None,
) -> dict[str, Any]:
    """Publish one notification envelope to Kafka."""
    _KafkaConsumer, KafkaProducer, _TopicPartition, _OffsetAndMetadata = _import_kafka_python()
    config = config or WorkerConfig.from_env()
    producer = KafkaProducer(
        bootstrap_servers=list(config.bootstrap_servers),
        value_serializer=_serialize_json_object,
        acks=config.producer_acks,
    )
    try:
        future = producer.send(topic or config.topic, value=dict(payload))
        metadata = future.get(timeout=config.send_timeout_seconds)
        producer.flush(timeout=config.send_timeout_seconds)
    finally:
        producer.close()

    return {
        "topic": metadata.topic,
        "partition": metadata.partition,
        "offset": metadata.offset,
    }


def run_worker_forever() -> int:
    """Build everything from the environment and run the receive loop."""
    worker_config = WorkerConfig.from_env()
    sender_config = SenderConfig.from_env()
    _KafkaConsumer, KafkaProducer, _TopicPartition, _OffsetAndMetadata = _import_kafka_python()

    queue = KafkaQueue.from_config(worker_config)
    dead_letter = (
        KafkaDeadLetterPublisher(
            KafkaProducer(
                bootstrap_servers=list(worker_config.bootstrap_servers),
                value_serializer=_serialize_json_object,
                acks=worker_config.producer_acks,
            ),
            topic=worker_config.dlq_topic,
            send_timeout_seconds=worker_config.send_timeout_seconds,
        )
        if worker_config.dlq_enabled
        else None
    )
    logger.info(
        "[WORKER CONFIG] topic=%s group_id=%s dlq_enabled=%s dlq_topic=%s",
        worker_config.topic,
        worker_config.group_id,
        worker_config.dlq_enabled,
        worker_config.dlq_topic,
    )

    loop = ReceiveLoop(
        queue,
        partial(process_message, senders=build_senders(sender_config)),
        receive_timeout=worker_config.receive_timeout_seconds,
        backoff_seconds=worker_config.retry_backoff_seconds,
        failure_policy=FailurePolicy(worker_config.failure_policy),
        dead_letter=dead_letter,
    )
    try:
        return loop.run_forever()
    finally:
        _close_quietly(queue)
        if dead_letter is not None:
            _close_quietly(dead_letter)


def _import_kafka_python() -> tuple[Any, Any, Any, Any]:
    try:
        from kafka import KafkaConsumer, KafkaProducer, TopicPartition
        from kafka.structs import OffsetAndMetadata
    except Exception as exc:
        raise RuntimeError(
            "Kafka support requires `kafka-python`. Install with: pip install kafka-python"
        ) from exc
    return KafkaConsumer, KafkaProducer, TopicPartition, OffsetAndMetadata


def _queue_message_from_record(record: Any) -> QueueMessage:
    topic = record.topic
    partition = int(record.partition)
    offset = int(record.offset)
    value = record.value
    if isinstance(value, str):
        body = value.encode("utf-8")
    elif value is None:
        body = b""
    else:
        body = bytes(value)
    return QueueMessage(
        message_id=f"{topic}:{partition}:{offset}",
        body=body,
        metadata={"topic": topic, "partition": partition, "offset": offset},
    )


def _serialize_json_object(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def _build_dlq_payload(message: QueueMessage, *, failure_reason: str) -> dict[str, Any]:
    metadata = message.metadata
    source_topic = metadata.get("topic", "unknown")
    payload: dict[str, Any] = {
        "event_type": f"{source_topic}.dlq",
        "failed_at": datetime.now(tz=UTC).isoformat(),
        "failure_reason": failure_reason,
        "source": {
            "message_id": message.message_id,
            "topic": source_topic,
            "partition": metadata.get("partition"),
            "offset": metadata.get("offset"),
            "delivery_count": message.delivery_count,
        },
        "payload": _decode_for_dlq(message.body),
    }

    if isinstance(payload["payload"], Mapping):
        user_id = payload["payload"].get("userId")
        if isinstance(user_id, str) and user_id.strip():
            payload["source_user_id"] = user_id.strip()

    return payload


def _decode_for_dlq(body: bytes) -> Any:
    """Keep the original JSON when it parses, else the text as-is."""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _offset_and_metadata(offset_and_metadata_type: Any, offset: int) -> Any:
    """Build kafka-python OffsetAndMetadata across version signatures."""
    try:
        return offset_and_metadata_type(offset, "", -1)
    except TypeError:
        try:
            return offset_and_metadata_type(offset, "", None)
        except TypeError:
            return offset_and_metadata_type(offset, "")


def _close_quietly(resource: Any) -> None:
    try:
        resource.close()
    except Exception as exc:
        logger.warning("[CLOSE ERROR] resource=%s error=%s", type(resource).__name__, exc)
