"""
Unit tests for error classification.
"""

import asyncio

from pgmq_consumer.errors import AbortError, DriverError, is_abort_error


class TestIsAbortError:
    """Tests for is_abort_error."""

    def test_abort_error(self):
        assert is_abort_error(AbortError()) is True

    def test_timeout_errors(self):
        assert is_abort_error(TimeoutError()) is True
        assert is_abort_error(asyncio.TimeoutError()) is True

    def test_driver_error_caused_by_abort(self):
        """Test a driver error wrapping an abort is classified as abort."""
        error = DriverError.from_exception("send", "q_dlq", AbortError("deadline"))

        assert is_abort_error(error) is True

    def test_other_errors(self):
        assert is_abort_error(ValueError("bad")) is False
        assert is_abort_error(DriverError("read", "q", "down")) is False


class TestDriverError:
    """Tests for DriverError."""

    def test_message_and_cause(self):
        cause = ConnectionRefusedError("refused")

        error = DriverError.from_exception("read", "jobs", cause)

        assert error.operation == "read"
        assert error.queue_name == "jobs"
        assert error.__cause__ is cause
        assert str(error) == "read on queue 'jobs' failed: refused"
