from __future__ import annotations

from collections import namedtuple
import json
import unittest
from types import SimpleNamespace
from unittest import mock

from notifier.adapters import kafka_runtime
from notifier.adapters.queue import QueueMessage
from notifier.adapters.receive_loop import LoopState, ReceiveLoop
from notifier.adapters.smtp_sender import EmailSender
from notifier.adapters.whatsapp_sender import WhatsAppSender
from notifier.config import SenderConfig
from notifier.domain.event import ChannelType

TopicPartition = namedtuple("TopicPartition", ["topic", "partition"])


def offset_and_metadata(offset: int, metadata: str, leader_epoch: object | None) -> tuple[int, str]:
    return (offset, metadata)


def make_record(offset: int, value: bytes | str | None) -> SimpleNamespace:
    return SimpleNamespace(topic="notifications", partition=2, offset=offset, value=value)


class KafkaQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.consumer = mock.Mock()
        self.queue = kafka_runtime.KafkaQueue(
            self.consumer,
            topic_partition_type=TopicPartition,
            offset_and_metadata_type=offset_and_metadata,
        )

    def test_receive_one_maps_record_to_queue_message(self) -> None:
        self.consumer.poll.return_value = {
            TopicPartition("notifications", 2): [make_record(41, b'{"userId":"u"}')]
        }

        message = self.queue.receive_one(60.0)

        self.consumer.poll.assert_called_once_with(timeout_ms=60000, max_records=1)
        self.assertIsNotNone(message)
        self.assertEqual(message.message_id, "notifications:2:41")
        self.assertEqual(message.body, b'{"userId":"u"}')
        self.assertEqual(
            message.metadata, {"topic": "notifications", "partition": 2, "offset": 41}
        )

    def test_receive_one_returns_none_when_poll_times_out(self) -> None:
        self.consumer.poll.return_value = {}

        self.assertIsNone(self.queue.receive_one(0.5))
        self.consumer.poll.assert_called_once_with(timeout_ms=500, max_records=1)

    def test_receive_one_normalizes_text_and_empty_values(self) -> None:
        self.consumer.poll.side_effect = [
            {TopicPartition("notifications", 2): [make_record(1, "text")]},
            {TopicPartition("notifications", 2): [make_record(2, None)]},
        ]

        self.assertEqual(self.queue.receive_one(1.0).body, b"text")
        self.assertEqual(self.queue.receive_one(1.0).body, b"")

    def test_acknowledge_commits_next_offset(self) -> None:
        self.consumer.poll.return_value = {
            TopicPartition("notifications", 2): [make_record(41, b"{}")]
        }
        message = self.queue.receive_one(1.0)

        self.queue.acknowledge(message)

        self.consumer.commit.assert_called_once_with(
            offsets={TopicPartition("notifications", 2): (42, "")}
        )

    def test_abandon_seeks_back_to_record(self) -> None:
        self.consumer.poll.return_value = {
            TopicPartition("notifications", 2): [make_record(41, b"{}")]
        }
        message = self.queue.receive_one(1.0)

        self.queue.abandon(message)

        self.consumer.seek.assert_called_once_with(TopicPartition("notifications", 2), 41)
        self.consumer.commit.assert_not_called()

    def test_failed_commit_seeks_back_so_record_is_redelivered(self) -> None:
        tp = TopicPartition("notifications", 2)
        self.consumer.poll.side_effect = [
            {tp: [make_record(5, b"{}")]},
            {tp: [make_record(5, b"{}")]},
        ]
        self.consumer.commit.side_effect = [RuntimeError("commit failed"), None]
        loop = ReceiveLoop(self.queue, mock.Mock(return_value={}))

        first = loop.poll_once()
        second = loop.poll_once()

        self.assertIs(first["state"], LoopState.ABANDONED)
        self.consumer.seek.assert_called_once_with(tp, 5)
        self.assertIs(second["state"], LoopState.ACKNOWLEDGED)
        self.assertEqual(
            self.consumer.commit.call_args_list[-1], mock.call(offsets={tp: (6, "")})
        )


class KafkaDeadLetterPublisherTests(unittest.TestCase):
    def make_message(self, body: bytes) -> QueueMessage:
        return QueueMessage(
            message_id="notifications:0:7",
            body=body,
            metadata={"topic": "notifications", "partition": 0, "offset": 7},
        )

    def test_publish_sends_envelope_and_reports_success(self) -> None:
        producer = mock.Mock()
        producer.send.return_value.get.return_value = SimpleNamespace(
            topic="notifications.dlq", partition=0, offset=3
        )
        publisher = kafka_runtime.KafkaDeadLetterPublisher(
            producer, topic="notifications.dlq", send_timeout_seconds=4.0
        )

        published = publisher.publish(self.make_message(b'{"userId":"u-1"}'), "parse_failed: x")

        self.assertTrue(published)
        topic = producer.send.call_args.args[0]
        value = producer.send.call_args.kwargs["value"]
        self.assertEqual(topic, "notifications.dlq")
        self.assertEqual(value["failure_reason"], "parse_failed: x")
        producer.send.return_value.get.assert_called_once_with(timeout=4.0)

    def test_publish_failure_returns_false(self) -> None:
        producer = mock.Mock()
        producer.send.return_value.get.side_effect = TimeoutError("broker down")
        publisher = kafka_runtime.KafkaDeadLetterPublisher(producer, topic="notifications.dlq")

        self.assertFalse(publisher.publish(self.make_message(b"{}"), "reason"))

    def test_close_flushes_before_closing(self) -> None:
        producer = mock.Mock()
        publisher = kafka_runtime.KafkaDeadLetterPublisher(producer, topic="notifications.dlq")

        publisher.close()

        self.assertEqual(
            [call[0] for call in producer.method_calls], ["flush", "close"]
        )


class KafkaRuntimeHelperTests(unittest.TestCase):
    def test_build_dlq_payload_includes_source_metadata_and_user_id(self) -> None:
        message = QueueMessage(
            message_id="notifications:0:42",
            body=b'{"userId":" user-9 ","notificationMessage":"Hi","channels":[]}',
            delivery_count=3,
            metadata={"topic": "notifications", "partition": 0, "offset": 42},
        )

        dlq_payload = kafka_runtime._build_dlq_payload(
            message, failure_reason="one_or_more_requested_channels_failed"
        )

        self.assertEqual(dlq_payload["event_type"], "notifications.dlq")
        self.assertEqual(dlq_payload["failure_reason"], "one_or_more_requested_channels_failed")
        self.assertEqual(
            dlq_payload["source"],
            {
                "message_id": "notifications:0:42",
                "topic": "notifications",
                "partition": 0,
                "offset": 42,
                "delivery_count": 3,
            },
        )
        self.assertEqual(dlq_payload["payload"]["notificationMessage"], "Hi")
        self.assertEqual(dlq_payload["source_user_id"], "user-9")
        self.assertIn("failed_at", dlq_payload)

    def test_build_dlq_payload_keeps_unparseable_body_as_text(self) -> None:
        message = QueueMessage(message_id="m-1", body=b'{"invalid json"}')

        dlq_payload = kafka_runtime._build_dlq_payload(message, failure_reason="parse_failed")

        self.assertEqual(dlq_payload["event_type"], "unknown.dlq")
        self.assertEqual(dlq_payload["payload"], '{"invalid json"}')
        self.assertNotIn("source_user_id", dlq_payload)
        json.dumps(dlq_payload)

    def test_offset_and_metadata_prefers_three_arg_signature(self) -> None:
        calls: list[tuple[int, str, object | None]] = []

        def factory(offset: int, metadata: str, leader_epoch: object | None) -> tuple[int, str]:
            calls.append((offset, metadata, leader_epoch))
            return (offset, metadata)

        built = kafka_runtime._offset_and_metadata(factory, 99)
        self.assertEqual(built, (99, ""))
        self.assertEqual(calls, [(99, "", -1)])

    def test_offset_and_metadata_falls_back_to_two_arg_signature(self) -> None:
        calls: list[tuple[int, str]] = []

        def factory(offset: int, metadata: str) -> tuple[int, str]:
            calls.append((offset, metadata))
            return (offset, metadata)

        built = kafka_runtime._offset_and_metadata(factory, 42)
        self.assertEqual(built, (42, ""))
        self.assertEqual(calls, [(42, "")])

    def test_build_senders_covers_both_channels(self) -> None:
        senders = kafka_runtime.build_senders(SenderConfig())

        self.assertIsInstance(senders[ChannelType.EMAIL], EmailSender)
        self.assertIsInstance(senders[ChannelType.WHATSAPP], WhatsAppSender)
        self.assertNotIn(ChannelType.UNKNOWN, senders)


if __name__ == "__main__":
    unittest.main()
