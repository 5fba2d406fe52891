"""Cancellable fixed-interval status polling for gateway tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

from .errors import PollingError, PollTimeoutError
from .gateway_client import GatewayBusinessError, GatewayTransportError
from .status import Task, TaskStatus, map_status

logger = logging.getLogger(__name__)

StatusCallback = Callable[[Task], None]


class Clock(Protocol):
    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class StatusSource(Protocol):
    async def status(self, task_id: str) -> Any: ...


class PollHandle:
    """
    Handle to a running poll loop.

    Cancellation is cooperative: the loop checks the flag before each tick and
    discards the result of a request that was in flight when ``cancel`` was
    called. No callbacks fire after cancellation.
    """

    def __init__(self, task_id: str):
        self.task_id = task_id
        self.task = Task(task_id=task_id)
        self._cancelled = False
        self._runner: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            logger.info(f"Polling cancelled for task {self.task_id}")
        self._cancelled = True

    def done(self) -> bool:
        return self._runner is not None and self._runner.done()

    async def wait(self) -> Optional[Task]:
        """
        Wait for the loop to stop.

        Returns:
            The task in its terminal state, or None if polling was cancelled

        Raises:
            PollingError: consecutive-failure tolerance exceeded, malformed payload or timeout
        """
        if self._runner is None:
            raise RuntimeError("poller not started")
        return await self._runner


class Poller:
    """Drives status checks for one task: immediately, then every ``interval`` seconds."""

    def __init__(
        self,
        source: StatusSource,
        interval: float = 3.0,
        max_consecutive_failures: int = 3,
        timeout: Optional[float] = 300.0,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize poller.

        Args:
            source: Object exposing ``async status(task_id)`` returning the raw status data
            interval: Seconds between status checks
            max_consecutive_failures: Failed ticks in a row that abort polling
            timeout: Seconds before giving up on a task; None or 0 polls forever
            clock: Time source, replaced by a virtual clock in tests
        """
        self.source = source
        self.interval = interval
        self.max_consecutive_failures = max_consecutive_failures
        self.timeout = timeout or None
        self.clock = clock or SystemClock()

    def start(self, task_id: str, on_update: Optional[StatusCallback] = None) -> PollHandle:
        handle = PollHandle(task_id)
        handle._runner = asyncio.create_task(self._poll(handle, on_update))
        return handle

    async def _poll(self, handle: PollHandle, on_update: Optional[StatusCallback]) -> Optional[Task]:
        task = handle.task
        started = self.clock.monotonic()
        failures = 0
        logger.info(f"Polling started for task {task.task_id}")

        while True:
            if handle.cancelled:
                return None
            if self.timeout is not None and self.clock.monotonic() - started >= self.timeout:
                logger.error(f"Polling timed out for task {task.task_id} after {self.timeout}s")
                raise PollTimeoutError(f"task {task.task_id} did not finish within {self.timeout} seconds")

            try:
                data = await self.source.status(task.task_id)
            except (GatewayTransportError, GatewayBusinessError) as e:
                if handle.cancelled:
                    return None
                failures += 1
                if failures >= self.max_consecutive_failures:
                    logger.error(f"Status check failed {failures} times in a row for task {task.task_id}: {e}")
                    raise PollingError(
                        f"failed to check status after {failures} attempts: {e}",
                        status_code=getattr(e, "status_code", None),
                        body=getattr(e, "body", None),
                        code=getattr(e, "code", None),
                    ) from e
                logger.warning(
                    f"Status check failed for task {task.task_id}, retrying next tick "
                    f"({failures}/{self.max_consecutive_failures}): {e}"
                )
            else:
                if handle.cancelled:
                    return None
                failures = 0
                try:
                    update = map_status(data)
                except ValueError as e:
                    raise PollingError(f"malformed status payload for task {task.task_id}: {e}", body=data) from e

                task.apply(update)
                logger.debug(f"Task {task.task_id} status={task.status.value} progress={task.progress}")
                if on_update is not None:
                    on_update(task)

                if task.status is TaskStatus.COMPLETED:
                    logger.info(f"Task {task.task_id} completed")
                    return task
                if task.status is TaskStatus.ERROR:
                    logger.warning(f"Task {task.task_id} failed: {task.message or 'no message'}")
                    return task

            await self.clock.sleep(self.interval)
