"""
Unit tests for the message and options types.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from pgmq_consumer.config import Settings
from pgmq_consumer.constants import ConsumeType, HandlerErrorPolicy
from pgmq_consumer.types import ConsumerOptions, CycleReport, Message


class TestMessage:
    """Tests for Message."""

    def test_validate_from_pgmq_row(self):
        """Test a pgmq row validates through the column aliases."""
        message = Message.model_validate(
            {
                "msg_id": 12,
                "read_ct": 3,
                "enqueued_at": "2024-05-01T10:00:00+00:00",
                "vt": "2024-05-01T10:00:30+00:00",
                "message": {"user_id": 9},
            }
        )

        assert message.id == 12
        assert message.read_count == 3
        assert message.payload == {"user_id": 9}
        assert message.visible_at == datetime(2024, 5, 1, 10, 0, 30, tzinfo=timezone.utc)

    def test_python_names_accepted(self):
        """Test fields can be populated by their Python names."""
        now = datetime.now(timezone.utc)

        message = Message(id=1, read_count=0, enqueued_at=now, visible_at=now, payload={})

        assert message.to_row()["msg_id"] == 1
        assert message.to_row()["read_ct"] == 0


class TestConsumerOptions:
    """Tests for ConsumerOptions."""

    def test_defaults(self):
        options = ConsumerOptions(queue_name="q")

        assert options.consume_type == ConsumeType.READ
        assert options.pool_size == 1
        assert options.poll_interval_ms == 1000
        assert options.enabled_polling is True
        assert options.handler_error_policy == HandlerErrorPolicy.REPORT
        assert options.dead_letter_enabled is False

    def test_dead_letter_pairing(self):
        with pytest.raises(ValidationError):
            ConsumerOptions(queue_name="q", dead_letter_queue_name="q_dlq")

    def test_threshold_without_queue_is_allowed(self):
        options = ConsumerOptions(queue_name="q", max_retries_before_dead_letter=2)

        assert options.exceeds_retry_budget(10) is False

    def test_exceeds_retry_budget_is_strict(self):
        options = ConsumerOptions(
            queue_name="q",
            dead_letter_queue_name="q_dlq",
            max_retries_before_dead_letter=2,
        )

        assert options.exceeds_retry_budget(2) is False
        assert options.exceeds_retry_budget(3) is True

    def test_deadline_defaults_to_one_second(self):
        assert ConsumerOptions(queue_name="q", consume_type="pop").deadline_seconds == 1
        assert ConsumerOptions(queue_name="q", visibility_time=30).deadline_seconds == 30

    def test_poll_intervals(self):
        options = ConsumerOptions(queue_name="q", poll_interval_ms=250)

        assert options.poll_interval_seconds == pytest.approx(0.25)
        assert options.empty_poll_interval_seconds == pytest.approx(2.5)

    def test_options_are_frozen(self):
        options = ConsumerOptions(queue_name="q")

        with pytest.raises(ValidationError):
            options.pool_size = 4

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            ConsumerOptions(queue_name="")
        with pytest.raises(ValidationError):
            ConsumerOptions(queue_name="q", pool_size=0)
        with pytest.raises(ValidationError):
            ConsumerOptions(queue_name="q", unknown=True)

    def test_from_settings(self, monkeypatch):
        """Test settings supply defaults and overrides win."""
        settings = Settings(
            consumer_poll_interval_ms=500,
            consumer_pool_size=8,
            consumer_visibility_time=45,
        )
        monkeypatch.setattr("pgmq_consumer.types.options.get_settings", lambda: settings)

        options = ConsumerOptions.from_settings("jobs", pool_size=2)

        assert options.queue_name == "jobs"
        assert options.visibility_time == 45
        assert options.poll_interval_ms == 500
        assert options.pool_size == 2


class TestCycleReport:
    """Tests for CycleReport."""

    def test_empty(self):
        assert CycleReport().empty is True
        assert CycleReport(fetched=1).empty is False
        assert CycleReport(errors=[ValueError()]).empty is False
