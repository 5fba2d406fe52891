"""Tests for error classification and user-facing progress and messages."""

import pytest

from polaroid_gateway.errors import NoResultError, PollTimeoutError, UploadError
from polaroid_gateway.reporter import (
    ErrorCategory,
    available_locales,
    classify_error_message,
    to_user_message,
    to_user_progress,
)
from polaroid_gateway.status import TaskStatus


@pytest.mark.parametrize(
    "message, category",
    [
        ("Server side error while running node 12", ErrorCategory.TRANSIENT_SERVER),
        ("Request timeout", ErrorCategory.TIMEOUT),
        ("TIMEOUT waiting for worker", ErrorCategory.TIMEOUT),
        ("Invalid image format", ErrorCategory.INVALID_INPUT),
        ("something else went wrong", ErrorCategory.GENERIC_FAILURE),
        ("", ErrorCategory.GENERIC_FAILURE),
        (None, ErrorCategory.GENERIC_FAILURE),
    ],
)
def test_classify_error_message(message, category):
    assert classify_error_message(message) is category


def test_classification_order_prefers_server_side():
    assert classify_error_message("server side timeout, invalid state") is ErrorCategory.TRANSIENT_SERVER


def test_user_progress():
    assert to_user_progress(TaskStatus.COMPLETED, 10) == 100
    assert to_user_progress(TaskStatus.RUNNING, 50) == 50
    assert to_user_progress(TaskStatus.RUNNING, None) == 0
    assert to_user_progress(TaskStatus.UNKNOWN, 250) == 100
    assert to_user_progress(TaskStatus.UNKNOWN, -5) == 0


def test_every_category_has_a_message_in_every_locale():
    for locale in available_locales():
        for category in ErrorCategory:
            assert to_user_message(category, locale)


def test_unknown_locale_falls_back_to_english():
    assert to_user_message(ErrorCategory.TIMEOUT, "fr") == to_user_message(ErrorCategory.TIMEOUT, "en")


def test_chinese_messages():
    assert to_user_message(ErrorCategory.NO_RESULT, "zh") == "图像生成失败：未返回图像"


def test_workflow_errors_carry_categories():
    assert UploadError("x").category is ErrorCategory.UPLOAD_FAILED
    assert NoResultError("x").category is ErrorCategory.NO_RESULT
    assert PollTimeoutError("x").category is ErrorCategory.TIMEOUT
