"""Audit pipeline wiring: one owner for the broker connection, publisher, consumer and recorder lifecycle."""

import logging
from typing import Any, Optional

import aio_pika

from app.application.audit_recorder import AuditRecorder
from app.application.audit_repository import AuditLogRepository
from app.config.settings import AppSettings
from app.infrastructure.messaging.connection import BrokerConnectionManager, ConnectFactory
from app.infrastructure.messaging.consumer import AuditEventConsumer
from app.infrastructure.messaging.exceptions import BrokerConnectionError
from app.infrastructure.messaging.publisher import EventPublisher
from app.infrastructure.messaging.topology import Topology
from app.observability.metrics import MetricsCollector
from app.scalability.bulkhead import BulkheadExecutor

logger = logging.getLogger(__name__)


class AuditPipeline:
    """
    Explicit init/teardown for the audit components. The connection manager is created
    here and handed to publisher and consumer; nothing else opens broker connections.
    """

    def __init__(
        self,
        connection: BrokerConnectionManager,
        topology: Topology,
        publisher: EventPublisher,
        consumer: AuditEventConsumer,
        recorder: AuditRecorder,
        metrics: MetricsCollector,
    ) -> None:
        self.connection = connection
        self.topology = topology
        self.publisher = publisher
        self.consumer = consumer
        self.recorder = recorder
        self.metrics = metrics
        self.connection.add_connect_hook(self.topology.declare)

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        repository: AuditLogRepository,
        *,
        connect_factory: ConnectFactory = aio_pika.connect,
        metrics: Optional[MetricsCollector] = None,
    ) -> "AuditPipeline":
        metrics = metrics or MetricsCollector()
        topology = Topology(
            exchange_name=settings.audit_exchange_name,
            queue_name=settings.audit_queue_name,
            binding_key=settings.audit_binding_key,
            dead_letter_enabled=settings.dead_letter_enabled,
        )
        connection = BrokerConnectionManager(
            settings.rabbitmq_url,
            base_delay=settings.broker_reconnect_base_delay_seconds,
            max_attempts=settings.broker_reconnect_max_attempts,
            connect_timeout=settings.broker_connect_timeout_seconds,
            heartbeat=settings.broker_heartbeat_seconds,
            connect_factory=connect_factory,
            metrics=metrics,
        )
        publisher = EventPublisher(
            connection,
            topology,
            BulkheadExecutor(
                max_concurrent=settings.publish_max_concurrent,
                max_queued=settings.publish_max_queued,
            ),
            publish_timeout=settings.publish_timeout_seconds,
            metrics=metrics,
        )
        recorder = AuditRecorder(repository, recent_limit=settings.audit_recent_limit)
        consumer = AuditEventConsumer(
            connection,
            topology,
            recorder,
            max_redeliveries=settings.consumer_max_redeliveries,
            metrics=metrics,
        )
        return cls(connection, topology, publisher, consumer, recorder, metrics)

    async def start(self) -> None:
        """Connect and start consuming. An unreachable broker leaves the pipeline degraded, not the app down."""
        try:
            await self.connection.connect()
        except BrokerConnectionError as e:
            logger.warning("audit_pipeline_degraded", extra={"error": e.message})
        await self.consumer.start()
        logger.info("audit_pipeline_started", extra=self.connection.status())

    async def shutdown(self) -> None:
        await self.consumer.stop()
        await self.publisher.close()
        await self.connection.close()
        logger.info("audit_pipeline_stopped")

    def status(self) -> dict[str, Any]:
        return {
            "broker": self.connection.status(),
            "consumer": self.consumer.get_status(),
        }
