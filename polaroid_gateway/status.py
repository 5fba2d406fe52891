"""Task status model and the mapping from raw gateway status payloads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


RUNNING_PROGRESS = 50

_STRING_STATUS_MAP = {
    "SUCCESS": (TaskStatus.COMPLETED, 100),
    "COMPLETED": (TaskStatus.COMPLETED, 100),
    "RUNNING": (TaskStatus.RUNNING, RUNNING_PROGRESS),
    "PENDING": (TaskStatus.RUNNING, RUNNING_PROGRESS),
    "FAILED": (TaskStatus.ERROR, None),
    "ERROR": (TaskStatus.ERROR, None),
}


@dataclass(frozen=True)
class StringStatus:
    value: str


@dataclass(frozen=True)
class ObjectStatus:
    status: str
    progress: float = 0
    message: Optional[str] = None


StatusPayload = Union[StringStatus, ObjectStatus]


@dataclass(frozen=True)
class StatusUpdate:
    """A status payload resolved into the internal enum.

    ``progress`` is ``None`` when the payload carries no progress information
    and the previous value should be kept. ``raw`` holds the status string as
    the gateway sent it.
    """
    status: TaskStatus
    progress: Optional[int]
    raw: str
    message: Optional[str] = None


def parse_status_payload(data: Any) -> StatusPayload:
    """
    Turn the loosely-typed ``data`` member of a status response into a tagged union.

    Raises:
        ValueError: payload is neither a string nor an object, or progress is not numeric
    """
    if isinstance(data, str):
        return StringStatus(data)
    if isinstance(data, dict):
        progress = data.get("progress") or 0
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            raise ValueError(f"status progress is not numeric: {progress!r}")
        message = data.get("error") or data.get("msg") or data.get("message")
        return ObjectStatus(
            status=str(data.get("status") or TaskStatus.UNKNOWN.value),
            progress=progress,
            message=str(message) if message else None,
        )
    raise ValueError(f"unsupported status payload: {data!r}")


def resolve_status(payload: StatusPayload) -> StatusUpdate:
    if isinstance(payload, StringStatus):
        mapped = _STRING_STATUS_MAP.get(payload.value)
        if mapped is None:
            return StatusUpdate(status=_lookup(payload.value), progress=0, raw=payload.value)
        status, progress = mapped
        return StatusUpdate(status=status, progress=progress, raw=payload.value)

    # Object form keeps its progress verbatim; only the status name is aliased.
    mapped = _STRING_STATUS_MAP.get(payload.status)
    return StatusUpdate(
        status=mapped[0] if mapped else _lookup(payload.status),
        progress=int(payload.progress),
        raw=payload.status,
        message=payload.message,
    )


def map_status(data: Any) -> StatusUpdate:
    return resolve_status(parse_status_payload(data))


def _lookup(raw: str) -> TaskStatus:
    try:
        return TaskStatus(raw)
    except ValueError:
        return TaskStatus.UNKNOWN


@dataclass
class Task:
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    raw_status: str = TaskStatus.PENDING.value
    message: Optional[str] = None

    def apply(self, update: StatusUpdate) -> None:
        """Mutate the task from a status tick; progress never moves backwards while running."""
        self.status = update.status
        self.raw_status = update.raw
        if update.message:
            self.message = update.message
        if update.status is TaskStatus.COMPLETED:
            self.progress = 100
        elif update.progress is None:
            return
        elif update.status is TaskStatus.RUNNING:
            self.progress = max(self.progress, update.progress)
        else:
            self.progress = update.progress
