"""Tests for status payload parsing and task state updates."""

import pytest

from polaroid_gateway.status import (
    ObjectStatus,
    StringStatus,
    Task,
    TaskStatus,
    map_status,
    parse_status_payload,
)


@pytest.mark.parametrize(
    "raw, status, progress",
    [
        ("SUCCESS", TaskStatus.COMPLETED, 100),
        ("COMPLETED", TaskStatus.COMPLETED, 100),
        ("RUNNING", TaskStatus.RUNNING, 50),
        ("PENDING", TaskStatus.RUNNING, 50),
        ("FAILED", TaskStatus.ERROR, None),
        ("ERROR", TaskStatus.ERROR, None),
    ],
)
def test_string_status_mapping(raw, status, progress):
    update = map_status(raw)
    assert update.status is status
    assert update.progress == progress
    assert update.raw == raw


def test_unrecognised_string_status_is_unknown():
    update = map_status("QUEUED")
    assert update.status is TaskStatus.UNKNOWN
    assert update.progress == 0
    assert update.raw == "QUEUED"


def test_object_status_passes_through():
    update = map_status({"status": "RUNNING", "progress": 42})
    assert update.status is TaskStatus.RUNNING
    assert update.progress == 42


@pytest.mark.parametrize(
    "data, status, progress",
    [
        ({"status": "SUCCESS"}, TaskStatus.COMPLETED, 0),
        ({"status": "COMPLETED", "progress": 100}, TaskStatus.COMPLETED, 100),
        ({"status": "PENDING", "progress": 5}, TaskStatus.RUNNING, 5),
        ({"status": "FAILED"}, TaskStatus.ERROR, 0),
        ({"status": "FAILED", "progress": 70}, TaskStatus.ERROR, 70),
        ({"status": "QUEUED", "progress": 10}, TaskStatus.UNKNOWN, 10),
    ],
)
def test_object_status_names_use_gateway_aliases(data, status, progress):
    """Object statuses share the string aliases but keep their own progress."""
    update = map_status(data)
    assert update.status is status
    assert update.progress == progress
    assert update.raw == data["status"]


def test_object_status_missing_progress_defaults_to_zero():
    payload = parse_status_payload({"status": "RUNNING"})
    assert payload == ObjectStatus(status="RUNNING", progress=0)


def test_object_status_carries_error_message():
    update = map_status({"status": "ERROR", "error": "Server side error"})
    assert update.status is TaskStatus.ERROR
    assert update.message == "Server side error"


def test_parse_string_payload():
    assert parse_status_payload("RUNNING") == StringStatus("RUNNING")


@pytest.mark.parametrize("data", [None, 12, ["RUNNING"], {"status": "RUNNING", "progress": "half"}])
def test_malformed_payload_raises(data):
    with pytest.raises(ValueError):
        map_status(data)


def test_task_progress_never_decreases_while_running():
    task = Task(task_id="t-1")
    task.apply(map_status({"status": "RUNNING", "progress": 70}))
    task.apply(map_status("RUNNING"))
    assert task.progress == 70
    assert task.status is TaskStatus.RUNNING


def test_task_completion_sets_full_progress():
    task = Task(task_id="t-1")
    task.apply(map_status("RUNNING"))
    task.apply(map_status("SUCCESS"))
    assert task.status is TaskStatus.COMPLETED
    assert task.progress == 100
    assert task.status.is_terminal


def test_task_failure_keeps_last_progress():
    task = Task(task_id="t-1")
    task.apply(map_status("RUNNING"))
    task.apply(map_status("FAILED"))
    assert task.status is TaskStatus.ERROR
    assert task.progress == 50
    assert task.raw_status == "FAILED"


def test_object_error_status_keeps_given_progress():
    update = map_status({"status": "ERROR", "progress": 70})
    assert (update.status, update.progress) == (TaskStatus.ERROR, 70)

    task = Task(task_id="t-1")
    task.apply(update)
    assert task.progress == 70
