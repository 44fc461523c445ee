"""
Consumer configuration.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pgmq_consumer.config import get_settings
from pgmq_consumer.constants import (
    DEFAULT_DEADLINE_SECONDS,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_POOL_SIZE,
    EMPTY_QUEUE_BACKOFF_FACTOR,
    ConsumeType,
    HandlerErrorPolicy,
)

DLQ_PAIRING_ERROR = (
    "The option max_retries_before_dead_letter is required "
    "when dead_letter_queue_name is set"
)


class ConsumerOptions(BaseModel):
    """
    Immutable options owned by a consumer for its lifetime.

    visibility_time is deliberately not validated here: a READ consumer
    without it is reported per cycle through the error event.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    queue_name: str = Field(..., min_length=1, description="Queue to consume")
    consume_type: ConsumeType = Field(ConsumeType.READ, description="pop or read")
    visibility_time: int | None = Field(
        None,
        description="Lease length in seconds; required for read",
    )
    pool_size: int = Field(DEFAULT_POOL_SIZE, ge=1, description="Messages per cycle")
    poll_interval_ms: int = Field(
        DEFAULT_POLL_INTERVAL_MS,
        ge=0,
        description="Delay between cycles in milliseconds",
    )
    enabled_polling: bool = Field(True, description="False runs exactly one cycle")
    dead_letter_queue_name: str | None = Field(None, description="Dead-letter queue")
    max_retries_before_dead_letter: int | None = Field(
        None,
        ge=0,
        description="read_count above which a message is dead-lettered",
    )
    handler_error_policy: HandlerErrorPolicy = Field(
        HandlerErrorPolicy.REPORT,
        description="Report or absorb handler exceptions that are not aborts",
    )

    @model_validator(mode="after")
    def check_dead_letter_pairing(self) -> "ConsumerOptions":
        """A dead-letter queue needs a retry threshold."""
        if self.dead_letter_queue_name and self.max_retries_before_dead_letter is None:
            raise ValueError(DLQ_PAIRING_ERROR)
        return self

    @property
    def dead_letter_enabled(self) -> bool:
        """Whether over-retried messages are rerouted."""
        return bool(self.dead_letter_queue_name)

    @property
    def deadline_seconds(self) -> int:
        """Deadline for one dispatch batch."""
        return self.visibility_time or DEFAULT_DEADLINE_SECONDS

    @property
    def poll_interval_seconds(self) -> float:
        """Delay before the next cycle after a non-empty one."""
        return self.poll_interval_ms / 1000

    @property
    def empty_poll_interval_seconds(self) -> float:
        """Delay before the next cycle after an empty fetch."""
        return self.poll_interval_seconds * EMPTY_QUEUE_BACKOFF_FACTOR

    def exceeds_retry_budget(self, read_count: int) -> bool:
        """Check whether a message has to go to the dead-letter queue."""
        if not self.dead_letter_enabled:
            return False
        return read_count > self.max_retries_before_dead_letter

    @classmethod
    def from_settings(
        cls,
        queue_name: str,
        consume_type: ConsumeType = ConsumeType.READ,
        **overrides: Any,
    ) -> "ConsumerOptions":
        """
        Build options from the application settings.

        Args:
            queue_name: Queue to consume.
            consume_type: pop or read.
            **overrides: Any other option, taking precedence over settings.

        Returns:
            ConsumerOptions with settings-backed defaults.
        """
        settings = get_settings()
        values: dict[str, Any] = {
            "queue_name": queue_name,
            "consume_type": consume_type,
            "visibility_time": settings.consumer_visibility_time,
            "pool_size": settings.consumer_pool_size,
            "poll_interval_ms": settings.consumer_poll_interval_ms,
        }
        values.update(overrides)
        return cls(**values)
