"""Unit tests for logging helpers."""

import logging

import pytest

from questlog.core.logging import log_with_context, log_with_member_context, span


@pytest.mark.unit
class TestLoggingHelpers:
    """Tests for structured logging helpers."""

    def test_log_with_context_sets_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("questlog.test")

        with caplog.at_level(logging.INFO, logger="questlog.test"):
            log_with_context(logger, "info", "Task added", task_id="t1")

        assert caplog.records[0].task_id == "t1"

    def test_member_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("questlog.test")

        with caplog.at_level(logging.WARNING, logger="questlog.test"):
            log_with_member_context(logger, "warning", "Level up", member_id="m1", level=3)
            log_with_member_context(logger, "warning", "Anonymous")

        assert (caplog.records[0].member_id, caplog.records[0].level) == ("m1", 3)
        assert not hasattr(caplog.records[1], "member_id")

    def test_span_is_a_context_manager(self) -> None:
        with span("tests.span"):
            pass
