"""Audit event publisher: best-effort, non-blocking hand-off of task mutations to the broker."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import aio_pika

from app.domain.models.task_event import TaskMutationEvent
from app.domain.schemas.task_event import encode_task_event
from app.infrastructure.messaging.connection import BROKER_ERRORS, BrokerConnectionManager
from app.infrastructure.messaging.exceptions import ChannelUnavailable, PublishFailure
from app.infrastructure.messaging.topology import Topology, routing_key_for
from app.observability.metrics import MetricsCollector
from app.scalability.bulkhead import BulkheadExecutor, BulkheadFullError

DEFAULT_PUBLISH_TIMEOUT = 1.0


class PublishStatus(str, Enum):
    QUEUED = "queued"
    DROPPED_UNHEALTHY = "dropped_unhealthy"
    DROPPED_BACKPRESSURE = "dropped_backpressure"
    DROPPED_UNSERIALIZABLE = "dropped_unserializable"


@dataclass(frozen=True)
class PublishResult:
    """
    Outcome of handing an event to the publisher. QUEUED only means the transmission was
    scheduled; its own outcome lands on `transmission` and is logged by the publisher.
    """

    status: PublishStatus
    event_id: str
    routing_key: str
    transmission: Optional["asyncio.Future[None]"] = field(default=None, compare=False, repr=False)

    @property
    def accepted(self) -> bool:
        return self.status is PublishStatus.QUEUED


class EventPublisher:
    """
    publish() never raises and never waits on the broker. When the connection is unhealthy
    the event is dropped; there is no client-side buffer or retry. Transmissions run on a
    bounded executor, so a slow broker turns into DROPPED_BACKPRESSURE instead of unbounded
    pending work.
    """

    def __init__(
        self,
        connection: BrokerConnectionManager,
        topology: Topology,
        executor: BulkheadExecutor,
        *,
        publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._connection = connection
        self._topology = topology
        self._executor = executor
        self._publish_timeout = publish_timeout
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)

    def publish(self, event: TaskMutationEvent) -> PublishResult:
        routing_key = routing_key_for(event.action)
        log_extra = {
            "task_id": event.task_id,
            "action": event.action.value,
            "routing_key": routing_key,
            "event_id": event.event_id,
        }

        if not self._connection.is_healthy():
            self._logger.warning("audit_event_skipped_broker_unavailable", extra=log_extra)
            return self._dropped(PublishStatus.DROPPED_UNHEALTHY, event, routing_key)

        try:
            body = encode_task_event(event)
        except ValueError as e:
            self._logger.error("audit_event_unserializable", extra={**log_extra, "error": str(e)})
            return self._dropped(PublishStatus.DROPPED_UNSERIALIZABLE, event, routing_key)

        try:
            transmission = self._executor.submit_nowait(self._transmit, event, routing_key, body)
        except BulkheadFullError as e:
            self._logger.warning("audit_event_dropped_backpressure", extra={**log_extra, "error": str(e)})
            return self._dropped(PublishStatus.DROPPED_BACKPRESSURE, event, routing_key)

        transmission.add_done_callback(
            lambda fut: self._on_transmitted(fut, event, routing_key)
        )
        if self._metrics is not None:
            self._metrics.increment("audit_publish_queued", action=event.action.value)
        return PublishResult(
            status=PublishStatus.QUEUED,
            event_id=event.event_id,
            routing_key=routing_key,
            transmission=transmission,
        )

    def _dropped(self, status: PublishStatus, event: TaskMutationEvent, routing_key: str) -> PublishResult:
        if self._metrics is not None:
            self._metrics.increment("audit_publish_dropped", action=event.action.value)
        return PublishResult(status=status, event_id=event.event_id, routing_key=routing_key)

    async def _transmit(self, event: TaskMutationEvent, routing_key: str, body: bytes) -> None:
        """Publish one persistent message. Raises PublishFailure."""
        try:
            channel = self._connection.get_channel()
            exchange = await channel.get_exchange(self._topology.exchange_name, ensure=False)
            message = aio_pika.Message(
                body=body,
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                message_id=event.event_id,
                timestamp=event.occurred_at,
            )
            await exchange.publish(message, routing_key=routing_key, timeout=self._publish_timeout)
        except ChannelUnavailable as e:
            raise PublishFailure(e.message) from e
        except BROKER_ERRORS as e:
            raise PublishFailure(f"Publish to {routing_key} failed: {e}") from e

    def _on_transmitted(
        self,
        future: "asyncio.Future[None]",
        event: TaskMutationEvent,
        routing_key: str,
    ) -> None:
        log_extra = {
            "task_id": event.task_id,
            "action": event.action.value,
            "routing_key": routing_key,
            "event_id": event.event_id,
        }
        if future.cancelled():
            self._logger.warning("audit_publish_cancelled", extra=log_extra)
            return
        error = future.exception()
        if error is None:
            if self._metrics is not None:
                self._metrics.increment("audit_published", action=event.action.value)
            self._logger.info("audit_event_published", extra=log_extra)
            return
        if self._metrics is not None:
            self._metrics.increment("audit_publish_failed", action=event.action.value)
        self._logger.error(
            "audit_publish_failed",
            extra={**log_extra, "error": str(error), "error_type": type(error).__name__},
        )

    async def close(self, timeout: float = 5.0) -> None:
        """Let in-flight transmissions finish (bounded by timeout), then stop the executor."""
        await self._executor.shutdown(timeout=timeout)
