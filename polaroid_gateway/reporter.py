"""Maps workflow state to user-visible progress and localized error messages."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from .status import TaskStatus


class ErrorCategory(str, Enum):
    TRANSIENT_SERVER = "transient-server"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    GENERIC_FAILURE = "generic-failure"
    UPLOAD_FAILED = "upload-failed"
    GENERATION_FAILED = "generation-failed"
    POLLING_FAILED = "polling-failed"
    RESULT_FAILED = "result-failed"
    NO_RESULT = "no-result"


DEFAULT_LOCALE = "en"

_MESSAGES: Dict[str, Dict[ErrorCategory, str]] = {
    "en": {
        ErrorCategory.TRANSIENT_SERVER: "Image processing failed. The server ran into a problem, please try again later.",
        ErrorCategory.TIMEOUT: "Image processing failed. Processing timed out, try a smaller image or try again later.",
        ErrorCategory.INVALID_INPUT: "Image processing failed. Your image may not meet the requirements, please try a different image.",
        ErrorCategory.GENERIC_FAILURE: "Image processing failed. Please try a different image or try again later.",
        ErrorCategory.UPLOAD_FAILED: "Image upload failed, please try again.",
        ErrorCategory.GENERATION_FAILED: "Could not start image generation, please try again.",
        ErrorCategory.POLLING_FAILED: "Image generation failed: could not check the task status.",
        ErrorCategory.RESULT_FAILED: "Image generation failed: could not fetch the result.",
        ErrorCategory.NO_RESULT: "Image generation failed: no images were returned.",
    },
    "zh": {
        ErrorCategory.TRANSIENT_SERVER: "图像处理失败。服务器处理出现问题，请稍后再试。",
        ErrorCategory.TIMEOUT: "图像处理失败。处理超时，请尝试上传更小的图片或稍后再试。",
        ErrorCategory.INVALID_INPUT: "图像处理失败。您的图片可能不符合处理要求，请尝试使用不同的图片。",
        ErrorCategory.GENERIC_FAILURE: "图像处理失败。请尝试使用不同的图片或稍后再试。",
        ErrorCategory.UPLOAD_FAILED: "图片上传失败，请重试",
        ErrorCategory.GENERATION_FAILED: "无法启动图像生成流程，请重试",
        ErrorCategory.POLLING_FAILED: "图像生成失败：无法获取任务状态",
        ErrorCategory.RESULT_FAILED: "图像生成失败：无法获取结果",
        ErrorCategory.NO_RESULT: "图像生成失败：未返回图像",
    },
}

# Checked in order; first substring hit wins.
_MESSAGE_PATTERNS = (
    ("server side", ErrorCategory.TRANSIENT_SERVER),
    ("timeout", ErrorCategory.TIMEOUT),
    ("invalid", ErrorCategory.INVALID_INPUT),
)


def classify_error_message(message: Optional[str]) -> ErrorCategory:
    """
    Best-effort classification of a free-text gateway error message.

    The gateway has no documented error vocabulary, so this is a substring
    match and anything unrecognised falls back to ``GENERIC_FAILURE``.
    """
    if not message:
        return ErrorCategory.GENERIC_FAILURE
    lowered = message.lower()
    for needle, category in _MESSAGE_PATTERNS:
        if needle in lowered:
            return category
    return ErrorCategory.GENERIC_FAILURE


def to_user_progress(status: TaskStatus, progress: Optional[int]) -> int:
    if status is TaskStatus.COMPLETED:
        return 100
    if progress is None:
        return 0
    return max(0, min(100, int(progress)))


def to_user_message(category: ErrorCategory, locale: str = DEFAULT_LOCALE) -> str:
    messages = _MESSAGES.get(locale, _MESSAGES[DEFAULT_LOCALE])
    return messages[ErrorCategory(category)]


def available_locales() -> list[str]:
    return sorted(_MESSAGES)
