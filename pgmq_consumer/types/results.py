"""
Result types for driver calls and poll cycles.
"""

from dataclasses import dataclass, field

from pgmq_consumer.types.message import Message


@dataclass
class OperationResult:
    """
    Outcome of a driver call that returns no data (send, delete).
    """

    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Whether the call succeeded."""
        return self.error is None


@dataclass
class FetchResult:
    """
    Outcome of a driver fetch (get, pop).
    """

    messages: list[Message] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Whether the call succeeded."""
        return self.error is None


@dataclass
class CycleReport:
    """
    Summary of one poll cycle.

    errors holds every failure surfaced as an error or abort-error event
    during the cycle, in the order they were observed.
    """

    fetched: int = 0
    finished: int = 0
    dead_lettered: int = 0
    failed: int = 0
    errors: list[Exception] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        """Whether the fetch returned no messages."""
        return self.fetched == 0 and not self.errors
