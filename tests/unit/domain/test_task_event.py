"""TaskMutationEvent invariants, wire encoding, task id parsing."""

import json
from datetime import datetime, timezone

import pytest

from app.domain.exceptions import DomainValidationError, InvalidTaskEventError
from app.domain.models.task_event import TaskAction, TaskMutationEvent
from app.domain.schemas.task_event import decode_task_event, encode_task_event
from app.domain.validators.task_validator import parse_task_id, validate_task_mutation_event

SNAPSHOT = {"id": 7, "title": "Write report", "status": "pending", "priority": "medium"}


def test_created_event_carries_only_new_data():
    event = TaskMutationEvent.created(7, SNAPSHOT)
    assert event.action is TaskAction.CREATE
    assert event.new_data == SNAPSHOT
    assert event.old_data is None
    assert event.occurred_at.tzinfo is not None
    assert event.event_id


def test_deleted_event_carries_pre_deletion_snapshot():
    event = TaskMutationEvent.deleted(7, SNAPSHOT)
    assert event.action is TaskAction.DELETE
    assert event.old_data == SNAPSHOT
    assert event.new_data is None


@pytest.mark.parametrize(
    "action,new_data,old_data",
    [
        (TaskAction.CREATE, None, None),
        (TaskAction.CREATE, SNAPSHOT, SNAPSHOT),
        (TaskAction.UPDATE, SNAPSHOT, None),
        (TaskAction.UPDATE, None, SNAPSHOT),
        (TaskAction.DELETE, SNAPSHOT, SNAPSHOT),
        (TaskAction.DELETE, None, None),
    ],
)
def test_snapshot_presence_enforced(action, new_data, old_data):
    with pytest.raises(InvalidTaskEventError):
        TaskMutationEvent(action=action, task_id=7, new_data=new_data, old_data=old_data)


def test_action_coerced_from_string():
    event = TaskMutationEvent(action="DELETE", task_id=3, old_data=SNAPSHOT)
    assert event.action is TaskAction.DELETE


def test_changed_fields_reports_old_and_new_values():
    event = TaskMutationEvent.updated(
        5,
        {**SNAPSHOT, "id": 5, "status": "pending"},
        {**SNAPSHOT, "id": 5, "status": "completed"},
    )
    assert event.changed_fields() == {"status": ("pending", "completed")}


def test_validate_rejects_noop_update_and_non_positive_id():
    with pytest.raises(InvalidTaskEventError):
        validate_task_mutation_event(TaskMutationEvent.updated(5, SNAPSHOT, dict(SNAPSHOT)))
    with pytest.raises(InvalidTaskEventError):
        validate_task_mutation_event(TaskMutationEvent.created(0, SNAPSHOT))
    validate_task_mutation_event(TaskMutationEvent.created(1, SNAPSHOT))


def test_encode_uses_camel_case_wire_format():
    occurred = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    event = TaskMutationEvent(
        action=TaskAction.UPDATE,
        task_id=5,
        old_data={"status": "pending"},
        new_data={"status": "completed"},
        occurred_at=occurred,
    )
    body = json.loads(encode_task_event(event))
    assert body["action"] == "UPDATE"
    assert body["taskId"] == 5
    assert body["oldData"] == {"status": "pending"}
    assert body["newData"] == {"status": "completed"}
    assert body["userId"] is None
    assert datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00")) == occurred


def test_decode_restores_event_and_message_id():
    event = TaskMutationEvent.deleted(9, SNAPSHOT)
    decoded = decode_task_event(encode_task_event(event), message_id="m-1")
    assert decoded.action is TaskAction.DELETE
    assert decoded.task_id == 9
    assert decoded.old_data == SNAPSHOT
    assert decoded.new_data is None
    assert decoded.event_id == "m-1"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"{}",
        b'{"action": "ARCHIVE", "taskId": 1, "timestamp": "2024-01-01T00:00:00Z"}',
        b'{"action": "CREATE", "taskId": 0, "newData": {}, "timestamp": "2024-01-01T00:00:00Z"}',
        b'{"action": "CREATE", "taskId": 1, "timestamp": "2024-01-01T00:00:00Z"}',
    ],
)
def test_decode_malformed_payload_raises(body):
    with pytest.raises(InvalidTaskEventError):
        decode_task_event(body)


@pytest.mark.parametrize("raw,expected", [("1", 1), ("42", 42), (" 7 ", 7)])
def test_parse_task_id_accepts_positive_integers(raw, expected):
    assert parse_task_id(raw) == expected


@pytest.mark.parametrize("raw", ["0", "-3", "abc", "", "1.5"])
def test_parse_task_id_rejects_invalid(raw):
    with pytest.raises(DomainValidationError) as exc:
        parse_task_id(raw)
    assert exc.value.message == "Invalid task ID"
