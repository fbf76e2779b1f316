"""Receive loop: poll, process, acknowledge or abandon.

Mental model refresher:
- This is the controller-like entrypoint for message processing.
- One cycle:
  Idle -> Polling -> (MessageReceived | Timeout | TransientError)
       -> Processing -> (Acknowledged | Abandoned) -> Idle
- This module owns queue lifecycle behavior (receive errors, backoff,
  acknowledge/abandon decisions), not channel business rules.

Acknowledge policy:
- Success: acknowledge.
- Malformed payload: dead-letter (when configured) and acknowledge. The same
  bytes would fail identically on every redelivery.
- Partial failure: FailurePolicy.ACKNOWLEDGE (default) dead-letters and
  acknowledges, so channels that already succeeded are not re-sent.
  FailurePolicy.ABANDON hands the message back to the queue for redelivery.
- A configured dead-letter publish that fails turns acknowledge into abandon
  so the message is not lost. A failed acknowledge is abandoned the same way.
"""

from __future__ import annotations

from enum import Enum
import logging
import time
from typing import Any, Callable, Optional

from ..errors import MalformedPayloadError, PartialFailureError
from ..types import LoopResult, ProcessingResult, SleepFn, StopFn
from .queue import DeadLetterPublisher, MessageQueue, QueueMessage

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], ProcessingResult]


class LoopState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    MESSAGE_RECEIVED = "message_received"
    TIMEOUT = "timeout"
    TRANSIENT_ERROR = "transient_error"
    PROCESSING = "processing"
    ACKNOWLEDGED = "acknowledged"
    ABANDONED = "abandoned"


class FailurePolicy(Enum):
    ACKNOWLEDGE = "acknowledge"
    ABANDON = "abandon"


class ReceiveLoop:
    def __init__(
        self,
        queue: MessageQueue,
        handler: MessageHandler,
        *,
        receive_timeout: float = 60.0,
        backoff_seconds: float = 5.0,
        failure_policy: FailurePolicy = FailurePolicy.ACKNOWLEDGE,
        dead_letter: Optional[DeadLetterPublisher] = None,
        sleep: SleepFn = time.sleep,
    ) -> None:
        self._queue = queue
        self._handler = handler
        self._receive_timeout = receive_timeout
        self._backoff_seconds = backoff_seconds
        self._failure_policy = failure_policy
        self._dead_letter = dead_letter
        self._sleep = sleep
        self.state = LoopState.IDLE

    def poll_once(self) -> LoopResult:
        """Run one receive cycle and return what happened."""
        self.state = LoopState.POLLING
        try:
            message = self._queue.receive_one(self._receive_timeout)
        except Exception as exc:
            self.state = LoopState.TRANSIENT_ERROR
            logger.warning(
                "[RECEIVE ERROR] error=%s retrying in %ss", exc, self._backoff_seconds
            )
            self._sleep(self._backoff_seconds)
            return self._finish(
                LoopState.TRANSIENT_ERROR, None, status="receive_failed", error=str(exc)
            )

        if message is None:
            self.state = LoopState.TIMEOUT
            return self._finish(LoopState.TIMEOUT, None, status="no_message")

        self.state = LoopState.MESSAGE_RECEIVED
        logger.info(
            "[RECEIVED] message_id=%s delivery_count=%s",
            message.message_id,
            message.delivery_count,
        )
        return self.handle_message(message)

    def handle_message(self, message: QueueMessage) -> LoopResult:
        """Process one received message and settle it with the queue."""
        self.state = LoopState.PROCESSING
        try:
            processing = self._handler(message.body)
        except MalformedPayloadError as exc:
            return self._settle_failure(
                message, status="parse_failed", reason=f"parse_failed: {exc}", redeliver=False
            )
        except PartialFailureError as exc:
            return self._settle_failure(
                message,
                status="processed_with_failures",
                reason="one_or_more_requested_channels_failed",
                redeliver=self._failure_policy is FailurePolicy.ABANDON,
                processing=exc.result,
            )

        state = self._acknowledge(message)
        return self._finish(
            state, message, status="processed_and_acknowledged", processing=processing
        )

    def run_forever(self, should_stop: Optional[StopFn] = None) -> int:
        """Poll until `should_stop()` is true or the process is interrupted."""
        logger.info(
            "[WORKER START] receive_timeout=%ss backoff=%ss failure_policy=%s dead_letter=%s",
            self._receive_timeout,
            self._backoff_seconds,
            self._failure_policy.value,
            self._dead_letter is not None,
        )
        try:
            while should_stop is None or not should_stop():
                self.poll_once()
        except KeyboardInterrupt:
            logger.info("[WORKER STOP] received keyboard interrupt")
            return 0
        except Exception:
            logger.exception("[WORKER ERROR] receive loop stopped")
            return 1
        logger.info("[WORKER STOP] stop requested")
        return 0

    def _settle_failure(
        self,
        message: QueueMessage,
        *,
        status: str,
        reason: str,
        redeliver: bool,
        processing: Optional[ProcessingResult] = None,
    ) -> LoopResult:
        logger.error(
            "[FAILED] message_id=%s status=%s reason=%s", message.message_id, status, reason
        )
        if redeliver:
            state = self._abandon(message, reason)
        elif self._dead_letter is not None and not self._dead_letter.publish(message, reason):
            state = self._abandon(message, f"dead_letter_failed: {reason}")
        else:
            state = self._acknowledge(message)
        return self._finish(state, message, status=status, processing=processing, error=reason)

    def _acknowledge(self, message: QueueMessage) -> LoopState:
        try:
            self._queue.acknowledge(message)
        except Exception as exc:
            logger.error("[ACK ERROR] message_id=%s error=%s", message.message_id, exc)
            # Kafka has already moved past the record; only a seek brings it back.
            return self._abandon(message, f"ack_failed: {exc}")
        logger.info("[ACK] message_id=%s", message.message_id)
        return LoopState.ACKNOWLEDGED

    def _abandon(self, message: QueueMessage, reason: str) -> LoopState:
        try:
            self._queue.abandon(message)
        except Exception as exc:
            logger.error("[ABANDON ERROR] message_id=%s error=%s", message.message_id, exc)
        else:
            logger.warning("[ABANDON] message_id=%s reason=%s", message.message_id, reason)
        return LoopState.ABANDONED

    def _finish(
        self,
        state: LoopState,
        message: Optional[QueueMessage],
        *,
        status: str,
        processing: Optional[ProcessingResult] = None,
        error: Optional[str] = None,
    ) -> LoopResult:
        self.state = LoopState.IDLE
        result: dict[str, Any] = {
            "state": state,
            "status": status,
            "message_id": message.message_id if message is not None else None,
            "processing": processing,
            "acknowledged": state is LoopState.ACKNOWLEDGED,
            "error": error,
        }
        return result
