"""Topology: routing keys, durable declaration, idempotent re-declare, dead-letter pair."""

import aio_pika
import pytest

from app.domain.models.task_event import TaskAction
from app.infrastructure.messaging.topology import Topology, routing_key_for
from tests.fakes import FakeBroker, topic_matches


@pytest.mark.parametrize(
    "action,key",
    [
        (TaskAction.CREATE, "task.create"),
        (TaskAction.UPDATE, "task.update"),
        (TaskAction.DELETE, "task.delete"),
        ("DELETE", "task.delete"),
    ],
)
def test_routing_key_per_action(action, key):
    assert routing_key_for(action) == key


@pytest.mark.parametrize("key", ["task.create", "task.update", "task.delete"])
def test_binding_matches_every_action(key):
    assert topic_matches(Topology().binding_key, key)


def test_dead_letter_names_derive_from_main_names():
    topology = Topology(exchange_name="ex", queue_name="q")
    assert topology.dead_letter_exchange_name == "ex.dlx"
    assert topology.dead_letter_queue_name == "q.dlq"


async def _channel(broker: FakeBroker):
    connection = await broker.connect("amqp://localhost/")
    return await connection.channel()


@pytest.mark.asyncio
async def test_declare_creates_durable_topic_exchange_and_queue():
    broker = FakeBroker()
    declared = await Topology().declare(await _channel(broker))

    assert declared.exchange.type == aio_pika.ExchangeType.TOPIC
    assert declared.exchange.durable is True
    assert declared.queue.durable is True
    assert declared.queue.arguments is None
    assert ("task-events", "task.*") in declared.queue.bindings


@pytest.mark.asyncio
async def test_declare_is_idempotent():
    broker = FakeBroker()
    topology = Topology()
    first = await topology.declare(await _channel(broker))
    second = await topology.declare(await _channel(broker))

    assert first.exchange is second.exchange
    assert first.queue is second.queue
    assert first.queue.bindings.count(("task-events", "task.*")) == 1


@pytest.mark.asyncio
async def test_declare_dead_letter_pair():
    broker = FakeBroker()
    declared = await Topology().declare(await _channel(broker))

    assert declared.dead_letter_exchange.type == aio_pika.ExchangeType.DIRECT
    assert declared.dead_letter_queue.name == "task-audit-queue.dlq"
    assert ("task-events.dlx", "task-audit-queue") in declared.dead_letter_queue.bindings


@pytest.mark.asyncio
async def test_declare_without_dead_letter():
    broker = FakeBroker()
    declared = await Topology(dead_letter_enabled=False).declare(await _channel(broker))

    assert declared.dead_letter_exchange is None
    assert declared.dead_letter_queue is None
    assert set(broker.queues) == {"task-audit-queue"}
