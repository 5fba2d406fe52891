"""Task workflow: upload, start generation, poll, fetch result, record to gallery."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Type, TypeVar

from .errors import (
    GenerationError,
    NoResultError,
    RemoteTaskError,
    ResultFetchError,
    UploadError,
    WorkflowError,
)
from .gallery import GalleryRecorder
from .gateway_client import (
    GatewayBusinessError,
    GatewayPayloadError,
    GatewayTransportError,
    OutputItem,
    RunData,
    UploadData,
)
from .poller import Clock, PollHandle, Poller, SystemClock
from .reporter import DEFAULT_LOCALE, classify_error_message, to_user_message, to_user_progress
from .status import Task, TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

IMAGE_TYPES = ("png", "jpg", "jpeg")

ProgressCallback = Callable[[int], None]


class Gateway(Protocol):
    async def upload(self, image: bytes, filename: str = ..., content_type: str = ...) -> UploadData: ...

    async def run(self, file_name: str) -> RunData: ...

    async def status(self, task_id: str) -> Any: ...

    async def outputs(self, task_id: str) -> List[OutputItem]: ...


class WorkflowState(str, Enum):
    UPLOADING = "uploading"
    GENERATING = "generating"
    POLLING = "polling"
    FETCHING = "fetching"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def select_image_urls(items: List[OutputItem]) -> List[str]:
    """Keep outputs with a URL whose type is missing or mentions png/jpg/jpeg."""
    urls = []
    for item in items:
        if not item.file_url:
            continue
        file_type = (item.file_type or "").lower()
        if not file_type or any(kind in file_type for kind in IMAGE_TYPES):
            urls.append(item.file_url)
    return urls


class TaskHandle:
    """Caller-facing view of one workflow run."""

    def __init__(self, locale: str = DEFAULT_LOCALE, on_progress: Optional[ProgressCallback] = None):
        self.locale = locale
        self.state = WorkflowState.UPLOADING
        self.file_name: Optional[str] = None
        self.task_id: Optional[str] = None
        self.task_status: Optional[TaskStatus] = None
        self.progress = 0
        self.result_url: Optional[str] = None
        self.error: Optional[WorkflowError] = None
        self.finished_at: Optional[float] = None
        self._on_progress = on_progress
        self._cancelled = False
        self._poll_handle: Optional[PollHandle] = None
        self._runner: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self.state in (WorkflowState.COMPLETED, WorkflowState.FAILED, WorkflowState.CANCELLED)

    def cancel(self) -> None:
        if self.done():
            return
        self._cancelled = True
        self.state = WorkflowState.CANCELLED
        if self._poll_handle is not None:
            self._poll_handle.cancel()
        logger.info(f"Workflow cancelled (task {self.task_id or 'not started'})")

    async def wait(self) -> Optional[str]:
        """
        Wait for the workflow to finish.

        Returns:
            The result image URL, or None if the workflow was cancelled

        Raises:
            WorkflowError: the workflow failed
        """
        if self._runner is not None:
            await self._runner
        if self.error is not None:
            raise self.error
        return self.result_url

    @property
    def message(self) -> Optional[str]:
        if self.error is None:
            return None
        return to_user_message(self.error.category, self.locale)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "task_id": self.task_id,
            "status": self.task_status.value if self.task_status else None,
            "progress": self.progress,
            "result_url": self.result_url,
            "error_category": self.error.category.value if self.error else None,
            "message": self.message,
        }

    def _report(self, task: Task) -> None:
        if self._cancelled:
            return
        self.task_status = task.status
        self.progress = to_user_progress(task.status, task.progress)
        if self._on_progress is not None:
            self._on_progress(self.progress)


class TaskClient:
    """
    Runs the generation workflow against the gateway.

    Upload, run and output calls are retried on transport failures only
    (``max_attempts`` total, ``retry_delay`` seconds apart); business errors
    reported by the gateway fail immediately.
    """

    def __init__(
        self,
        gateway: Gateway,
        poller: Optional[Poller] = None,
        recorder: Optional[GalleryRecorder] = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        clock: Optional[Clock] = None,
        locale: str = DEFAULT_LOCALE,
    ):
        self.gateway = gateway
        self.clock = clock or SystemClock()
        self.poller = poller or Poller(gateway, clock=self.clock)
        self.recorder = recorder
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.locale = locale

    async def _with_retry(self, step: str, call: Callable[[], Awaitable[T]], error_cls: Type[WorkflowError]) -> T:
        last_error: Optional[GatewayTransportError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await call()
            except GatewayBusinessError as e:
                logger.error(f"{step} rejected by gateway (code {e.code}): {e.msg}")
                raise error_cls(e.msg or f"{step} failed", code=e.code) from e
            except GatewayPayloadError as e:
                logger.error(f"{step} returned an unexpected payload: {e}")
                raise error_cls(str(e)) from e
            except GatewayTransportError as e:
                last_error = e
                if attempt < self.max_attempts:
                    logger.warning(f"{step} failed, retrying ({attempt}/{self.max_attempts}): {e}")
                    await self.clock.sleep(self.retry_delay)
                else:
                    logger.error(f"{step} failed after {self.max_attempts} attempts: {e}")

        raise error_cls(
            f"{step} failed after {self.max_attempts} attempts",
            status_code=last_error.status_code if last_error else None,
            body=last_error.body if last_error else None,
        ) from last_error

    async def upload(self, image: bytes, filename: str = "image.jpg") -> str:
        if not image:
            raise UploadError("No file provided")
        data = await self._with_retry("Upload", lambda: self.gateway.upload(image, filename), UploadError)
        return data.file_name

    async def start_generation(self, file_name: str) -> str:
        data = await self._with_retry("Generation request", lambda: self.gateway.run(file_name), GenerationError)
        return data.task_id

    async def fetch_result(self, task_id: str) -> str:
        items = await self._with_retry("Result fetch", lambda: self.gateway.outputs(task_id), ResultFetchError)
        urls = select_image_urls(items)
        logger.info(f"Found {len(urls)} images for task {task_id}")
        if not urls:
            raise NoResultError(f"No images returned for task {task_id}")
        return urls[0]

    def submit(
        self,
        image: bytes,
        filename: str = "image.jpg",
        on_progress: Optional[ProgressCallback] = None,
    ) -> TaskHandle:
        """Start the workflow in the background and return its handle."""
        handle = TaskHandle(locale=self.locale, on_progress=on_progress)
        handle._runner = asyncio.create_task(self._run(handle, image, filename))
        return handle

    async def _run(self, handle: TaskHandle, image: bytes, filename: str) -> None:
        try:
            handle.file_name = await self.upload(image, filename)
            if handle.cancelled:
                return

            handle.state = WorkflowState.GENERATING
            handle.task_id = await self.start_generation(handle.file_name)
            if handle.cancelled:
                return

            handle.state = WorkflowState.POLLING
            handle._poll_handle = self.poller.start(handle.task_id, on_update=handle._report)
            task = await handle._poll_handle.wait()
            if task is None or handle.cancelled:
                return

            if task.status is TaskStatus.ERROR:
                message = task.message or "Task processing failed"
                raise RemoteTaskError(message, classify_error_message(task.message))

            handle.state = WorkflowState.FETCHING
            url = await self.fetch_result(handle.task_id)
            if handle.cancelled:
                return

            await self._record(url)
            if handle.cancelled:
                return
            handle.result_url = url
            handle.progress = 100
            handle.state = WorkflowState.COMPLETED
            handle.finished_at = self.clock.monotonic()
            logger.info(f"Workflow completed for task {handle.task_id}: {url}")
        except WorkflowError as e:
            self._fail(handle, e)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Unexpected workflow error for task {handle.task_id}")
            self._fail(handle, WorkflowError(str(e)))

    def _fail(self, handle: TaskHandle, error: WorkflowError) -> None:
        if handle.cancelled:
            return
        handle.error = error
        handle.state = WorkflowState.FAILED
        handle.finished_at = self.clock.monotonic()
        logger.error(f"Workflow failed ({error.category.value}) for task {handle.task_id}: {error.message}")

    async def _record(self, url: str) -> None:
        if self.recorder is None:
            return
        try:
            saved = await self.recorder.record(url)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error saving to gallery: {e}")
            return
        if not saved:
            logger.warning(f"Result was not saved to gallery: {url}")


class WorkflowSession:
    """Holds the single live workflow of one user session."""

    def __init__(self, client: TaskClient):
        self.client = client
        self.current: Optional[TaskHandle] = None

    def start(self, image: bytes, filename: str = "image.jpg", on_progress: Optional[ProgressCallback] = None) -> TaskHandle:
        self.reset()
        self.current = self.client.submit(image, filename, on_progress=on_progress)
        return self.current

    def reset(self) -> None:
        if self.current is not None:
            self.current.cancel()
        self.current = None
