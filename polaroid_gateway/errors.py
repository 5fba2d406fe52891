"""Error taxonomy surfaced by the task workflow."""

from __future__ import annotations

from typing import Any, Optional

from .reporter import ErrorCategory


class WorkflowError(Exception):
    """Base exception for task workflow failures."""

    category: ErrorCategory = ErrorCategory.GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.code = code


class UploadError(WorkflowError):
    """Upload failed after retries, was rejected by the gateway, or had no file."""
    category = ErrorCategory.UPLOAD_FAILED


class GenerationError(WorkflowError):
    """Run request failed after retries or was rejected by the gateway."""
    category = ErrorCategory.GENERATION_FAILED


class PollingError(WorkflowError):
    """Too many consecutive failed status checks, or a malformed status payload."""
    category = ErrorCategory.POLLING_FAILED


class PollTimeoutError(PollingError):
    """Task did not reach a terminal state within the polling deadline."""
    category = ErrorCategory.TIMEOUT


class ResultFetchError(WorkflowError):
    """Outputs endpoint failed after retries or was rejected by the gateway."""
    category = ErrorCategory.RESULT_FAILED


class NoResultError(WorkflowError):
    """Task completed but produced no image output."""
    category = ErrorCategory.NO_RESULT


class RemoteTaskError(WorkflowError):
    """Gateway reported the task as failed."""

    def __init__(self, message: str, category: ErrorCategory, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.category = category
