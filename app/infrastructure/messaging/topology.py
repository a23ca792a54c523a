"""Broker topology for the audit pipeline: topic exchange, durable queue, binding, optional dead-letter pair."""

import logging
from dataclasses import dataclass
from typing import Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractQueue

from app.domain.models.task_event import TaskAction

logger = logging.getLogger(__name__)

EXCHANGE_TASK_EVENTS = "task-events"
QUEUE_TASK_AUDIT = "task-audit-queue"
BINDING_ALL_TASK_EVENTS = "task.*"
ROUTING_KEY_PREFIX = "task."


def routing_key_for(action: TaskAction) -> str:
    """task.create, task.update or task.delete."""
    return f"{ROUTING_KEY_PREFIX}{TaskAction(action).value.lower()}"


@dataclass(frozen=True)
class DeclaredTopology:
    exchange: AbstractExchange
    queue: AbstractQueue
    dead_letter_exchange: Optional[AbstractExchange] = None
    dead_letter_queue: Optional[AbstractQueue] = None


@dataclass(frozen=True)
class Topology:
    """
    Names and declaration of the exchange/queue structure. Declaring is idempotent:
    asserting identical durable entities against a broker that already has them is a no-op.
    The main queue carries no x-arguments, so it matches queues declared by older deployments.
    """

    exchange_name: str = EXCHANGE_TASK_EVENTS
    queue_name: str = QUEUE_TASK_AUDIT
    binding_key: str = BINDING_ALL_TASK_EVENTS
    dead_letter_enabled: bool = True

    @property
    def dead_letter_exchange_name(self) -> str:
        return f"{self.exchange_name}.dlx"

    @property
    def dead_letter_queue_name(self) -> str:
        return f"{self.queue_name}.dlq"

    async def declare(self, channel: AbstractChannel) -> DeclaredTopology:
        exchange = await channel.declare_exchange(
            self.exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )
        queue = await channel.declare_queue(self.queue_name, durable=True)
        await queue.bind(exchange, routing_key=self.binding_key)

        dlx: Optional[AbstractExchange] = None
        dlq: Optional[AbstractQueue] = None
        if self.dead_letter_enabled:
            dlx = await channel.declare_exchange(
                self.dead_letter_exchange_name,
                aio_pika.ExchangeType.DIRECT,
                durable=True,
            )
            dlq = await channel.declare_queue(self.dead_letter_queue_name, durable=True)
            # Dead-lettered messages are published with the main queue name as routing key
            await dlq.bind(dlx, routing_key=self.queue_name)

        logger.info(
            "topology_declared",
            extra={
                "exchange": self.exchange_name,
                "queue": self.queue_name,
                "binding_key": self.binding_key,
                "dead_letter_enabled": self.dead_letter_enabled,
            },
        )
        return DeclaredTopology(
            exchange=exchange,
            queue=queue,
            dead_letter_exchange=dlx,
            dead_letter_queue=dlq,
        )
