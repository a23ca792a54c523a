"""
Chaos: broker unavailable or lost while tasks are mutated.
System must: keep task mutations succeeding, drop (not buffer) events while disconnected,
reconnect with bounded backoff, resume consumption after recovery.
"""

import asyncio
import logging

import pytest
from aio_pika.exceptions import ChannelInvalidStateError

from app.application.task_service import TaskService
from app.domain.models.task_event import TaskMutationEvent
from app.domain.schemas.task import TaskCreateRequest, TaskUpdateRequest
from app.domain.schemas.task_event import encode_task_event
from app.infrastructure.messaging.connection import ConnectionState
from tests.fakes import wait_for


@pytest.fixture
def service(pipeline, task_repository):
    return TaskService(
        repository=task_repository,
        publisher=pipeline.publisher,
        logger=logging.getLogger(__name__),
    )


@pytest.mark.asyncio
async def test_broker_down_at_startup_app_still_serves(pipeline, broker, service, task_repository, audit_repository):
    broker.down = True
    await pipeline.start()
    assert pipeline.connection.state is ConnectionState.DEGRADED
    assert pipeline.consumer.is_running

    task = await service.create_task(TaskCreateRequest(title="Offline"))
    assert await task_repository.get(task.id) is not None
    assert broker.queues == {}
    assert audit_repository.entries == []


@pytest.mark.asyncio
async def test_events_during_outage_are_dropped_not_replayed(pipeline, broker, service, audit_repository):
    await pipeline.start()
    await service.create_task(TaskCreateRequest(title="Before outage"))
    await wait_for(lambda: len(audit_repository.entries) == 1)

    broker.down = True
    broker.current_connection.drop()
    await service.update_task(1, TaskUpdateRequest(status="in-progress"))

    broker.down = False
    await wait_for(pipeline.connection.is_healthy)
    await service.update_task(1, TaskUpdateRequest(status="completed"))
    await wait_for(lambda: len(audit_repository.entries) == 2)
    await asyncio.sleep(0.05)

    assert len(audit_repository.entries) == 2
    latest = audit_repository.entries[-1]
    assert latest.old_data["status"] == "in-progress"
    assert latest.new_data["status"] == "completed"
    assert pipeline.metrics.get("audit_publish_dropped") == 1


@pytest.mark.asyncio
async def test_reconnect_gives_up_after_max_attempts(pipeline, broker):
    await pipeline.start()
    broker.down = True
    broker.current_connection.drop()

    await wait_for(lambda: pipeline.connection.reconnect_exhausted)
    assert broker.connect_calls == 1 + 3
    assert pipeline.status()["broker"]["state"] == "degraded"

    # Operator-driven restart after the broker is back
    broker.down = False
    await pipeline.connection.connect()
    assert pipeline.connection.is_healthy()


@pytest.mark.asyncio
async def test_database_outage_messages_survive_until_recovery(pipeline, service, audit_repository):
    await pipeline.start()
    audit_repository.fail_next = 2

    await service.create_task(TaskCreateRequest(title="Retry me"))
    await wait_for(lambda: len(audit_repository.entries) == 1)
    assert pipeline.metrics.get("audit_consume_requeued") == 2


@pytest.mark.asyncio
async def test_persistent_database_failure_dead_letters(pipeline, broker, service, audit_repository):
    await pipeline.start()
    audit_repository.always_fail = True

    await service.create_task(TaskCreateRequest(title="Poison"))
    dlq = broker.queues["task-audit-queue.dlq"]
    await wait_for(lambda: dlq.pending() == 1)
    assert pipeline.metrics.get("audit_consume_requeued") == 3
    assert broker.queues["task-audit-queue"].pending() == 0


@pytest.mark.asyncio
async def test_channel_error_during_startup_leaves_pipeline_degraded(pipeline, broker, audit_repository):
    failures = 1

    async def flaky_hook(channel):
        nonlocal failures
        if failures:
            failures -= 1
            raise ChannelInvalidStateError("channel closed during declare")

    pipeline.connection.add_connect_hook(flaky_hook)
    await pipeline.start()
    assert pipeline.consumer.is_running
    assert broker.connections[0].is_closed

    await wait_for(pipeline.connection.is_healthy)
    event = TaskMutationEvent.created(7, {"id": 7, "title": "After restart"})
    broker.queues["task-audit-queue"].put(encode_task_event(event), message_id=event.event_id)
    await wait_for(lambda: len(audit_repository.entries) == 1)
    assert pipeline.consumer.is_running
