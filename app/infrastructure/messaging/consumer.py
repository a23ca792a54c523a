"""Audit event consumer: one sequential consumption loop feeding the audit recorder."""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage

from app.application.audit_recorder import AuditRecorder
from app.application.exceptions import ConsumeProcessingError, PersistenceError
from app.domain.exceptions import InvalidTaskEventError
from app.domain.schemas.task_event import decode_task_event
from app.infrastructure.messaging.connection import BROKER_ERRORS, BrokerConnectionManager
from app.infrastructure.messaging.exceptions import ChannelUnavailable
from app.infrastructure.messaging.topology import Topology
from app.observability.metrics import MetricsCollector

# One unacknowledged message at a time: persistence is strictly sequential per consumer.
PREFETCH_COUNT = 1
DEFAULT_MAX_REDELIVERIES = 5
RESUME_DELAY_SECONDS = 1.0
MAX_TRACKED_FAILURES = 10_000

SETTLE_ERRORS = BROKER_ERRORS + (RuntimeError,)


class ConsumeOutcome(str, Enum):
    ACKED = "acked"
    REQUEUED = "requeued"
    DEAD_LETTERED = "dead_lettered"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ConsumeResult:
    outcome: ConsumeOutcome
    message_id: Optional[str]
    attempts: int = 1
    error: Optional[ConsumeProcessingError] = None


class AuditEventConsumer:
    """
    Pulls audit messages from the queue and records them.

    Success acks. Failure nacks with requeue, so the broker redelivers immediately.
    Failures are counted per message id inside this process; once a message has failed
    more than max_redeliveries times it is published to the dead-letter exchange and acked
    (or rejected without requeue when dead-lettering is disabled). max_redeliveries=None
    requeues forever.
    """

    def __init__(
        self,
        connection: BrokerConnectionManager,
        topology: Topology,
        recorder: AuditRecorder,
        *,
        max_redeliveries: Optional[int] = DEFAULT_MAX_REDELIVERIES,
        resume_delay: float = RESUME_DELAY_SECONDS,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._connection = connection
        self._topology = topology
        self._recorder = recorder
        self._max_redeliveries = max_redeliveries
        self._resume_delay = resume_delay
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)

        self._running = False
        self._in_flight = False
        self._task: Optional[asyncio.Task[None]] = None
        self._failures: dict[str, int] = {}

    @property
    def queue_name(self) -> str:
        return self._topology.queue_name

    @property
    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> dict[str, Any]:
        return {"running": self._running, "queueName": self.queue_name}

    async def start(self) -> None:
        """Spawn the consumption loop. Starting an already running consumer logs and returns."""
        if self._running:
            self._logger.info("audit_consumer_already_running", extra={"queue": self.queue_name})
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"audit-consumer-{self.queue_name}")
        self._logger.info("audit_consumer_starting", extra={"queue": self.queue_name})

    async def stop(self) -> None:
        """
        Flip the running flag. A message being processed still gets acked or nacked
        before the loop exits; an idle loop is cancelled right away.
        """
        if not self._running:
            return
        self._running = False
        self._logger.info("audit_consumer_stopping", extra={"queue": self.queue_name})
        task, self._task = self._task, None
        if task is None:
            return
        if not self._in_flight:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            while self._running:
                await self._connection.wait_until_connected()
                if not self._running:
                    break
                try:
                    await self._consume(self._connection.get_channel())
                except (ChannelUnavailable, *BROKER_ERRORS) as e:
                    self._logger.warning(
                        "audit_consumer_interrupted",
                        extra={"queue": self.queue_name, "error": str(e)},
                    )
                except Exception:
                    self._logger.exception(
                        "audit_consumer_failed",
                        extra={"queue": self.queue_name},
                    )
                else:
                    if not self._running:
                        break
                    # The queue iterator ends when its channel closes.
                    self._logger.warning(
                        "audit_consumer_iterator_closed",
                        extra={"queue": self.queue_name},
                    )
                if self._running:
                    await asyncio.sleep(self._resume_delay)
        finally:
            self._running = False
            self._logger.info("audit_consumer_stopped", extra={"queue": self.queue_name})

    async def _consume(self, channel: AbstractChannel) -> None:
        await channel.set_qos(prefetch_count=PREFETCH_COUNT)
        queue = await channel.declare_queue(self.queue_name, durable=True)
        self._logger.info(
            "audit_consumer_waiting",
            extra={"queue": self.queue_name, "prefetch_count": PREFETCH_COUNT},
        )
        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                self._in_flight = True
                try:
                    await self.handle_message(message)
                finally:
                    self._in_flight = False
                if not self._running:
                    break

    async def handle_message(self, message: AbstractIncomingMessage) -> ConsumeResult:
        """Deserialize, persist, then ack; any failure goes through the redelivery policy."""
        key = self._delivery_key(message)
        try:
            event = decode_task_event(message.body, message.message_id)
            self._logger.info(
                "audit_message_processing",
                extra={"action": event.action.value, "task_id": event.task_id, "message_id": message.message_id},
            )
            await self._recorder.persist(event, message_id=message.message_id)
        except InvalidTaskEventError as e:
            error = ConsumeProcessingError(f"Malformed audit message: {e.message}")
        except PersistenceError as e:
            error = ConsumeProcessingError(f"Audit persistence failed: {e.message}")
        except Exception as e:
            error = ConsumeProcessingError(f"Unexpected error recording audit message: {e}")
        else:
            attempts = self._failures.pop(key, 0) + 1
            await self._settle(message.ack(), message)
            self._count("audit_consume_acked")
            return ConsumeResult(ConsumeOutcome.ACKED, message.message_id, attempts=attempts)
        return await self._handle_failure(message, key, error)

    async def _handle_failure(
        self,
        message: AbstractIncomingMessage,
        key: str,
        error: ConsumeProcessingError,
    ) -> ConsumeResult:
        attempts = self._record_failure(key)
        log_extra = {
            "queue": self.queue_name,
            "message_id": message.message_id,
            "attempts": attempts,
            "error": error.message,
        }
        if self._max_redeliveries is not None and attempts > self._max_redeliveries:
            if self._topology.dead_letter_enabled:
                try:
                    await self._dead_letter(message, error, attempts)
                except (ChannelUnavailable, *BROKER_ERRORS) as e:
                    self._logger.error("audit_dead_letter_failed", extra={**log_extra, "dl_error": str(e)})
                else:
                    self._failures.pop(key, None)
                    await self._settle(message.ack(), message)
                    self._count("audit_consume_dead_lettered")
                    self._logger.warning("audit_message_dead_lettered", extra=log_extra)
                    return ConsumeResult(ConsumeOutcome.DEAD_LETTERED, message.message_id, attempts, error)
            else:
                self._failures.pop(key, None)
                await self._settle(message.reject(requeue=False), message)
                self._count("audit_consume_rejected")
                self._logger.error("audit_message_discarded", extra=log_extra)
                return ConsumeResult(ConsumeOutcome.REJECTED, message.message_id, attempts, error)

        await self._settle(message.nack(requeue=True), message)
        self._count("audit_consume_requeued")
        self._logger.error("audit_message_requeued", extra=log_extra)
        return ConsumeResult(ConsumeOutcome.REQUEUED, message.message_id, attempts, error)

    async def _dead_letter(
        self,
        message: AbstractIncomingMessage,
        error: ConsumeProcessingError,
        attempts: int,
    ) -> None:
        channel = self._connection.get_channel()
        exchange = await channel.get_exchange(self._topology.dead_letter_exchange_name, ensure=False)
        headers = dict(message.headers or {})
        headers.update(
            {
                "x-dlq-reason": error.message,
                "x-dlq-attempts": attempts,
                "x-dlq-timestamp": datetime.now(timezone.utc).isoformat(),
                "x-original-routing-key": message.routing_key or "",
            }
        )
        await exchange.publish(
            aio_pika.Message(
                body=message.body,
                content_type=message.content_type,
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                message_id=message.message_id,
                headers=headers,
            ),
            routing_key=self._topology.queue_name,
        )

    async def _settle(self, settlement, message: AbstractIncomingMessage) -> None:
        # A lost channel means the broker requeues the delivery itself.
        try:
            await settlement
        except SETTLE_ERRORS as e:
            self._logger.warning(
                "audit_message_settle_failed",
                extra={"message_id": message.message_id, "error": str(e)},
            )

    def _record_failure(self, key: str) -> int:
        attempts = self._failures.pop(key, 0) + 1
        if len(self._failures) >= MAX_TRACKED_FAILURES:
            self._failures.pop(next(iter(self._failures)))
        self._failures[key] = attempts
        return attempts

    @staticmethod
    def _delivery_key(message: AbstractIncomingMessage) -> str:
        return message.message_id or hashlib.sha256(message.body).hexdigest()

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(name)
