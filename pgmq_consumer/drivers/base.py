"""
Queue driver protocol.

The consumer talks to its backend only through these four operations.
Implementations report failures in the returned result and never raise.
"""

from typing import Protocol, runtime_checkable

from pgmq_consumer.cancellation import AbortSignal
from pgmq_consumer.types import FetchResult, OperationResult, Payload


@runtime_checkable
class QueueDriver(Protocol):
    """
    Capability the consumer needs from a queue backend.

    Implementations must be safe to call concurrently from the tasks of
    one batch.
    """

    async def send(
        self,
        queue_name: str,
        payload: Payload,
        signal: AbortSignal | None = None,
    ) -> OperationResult:
        """
        Enqueue a new message.

        Args:
            queue_name: Destination queue.
            payload: Message body.
            signal: Cancellation signal to observe while sending.
        """
        ...

    async def get(
        self,
        queue_name: str,
        visibility_time: int,
        max_count: int,
    ) -> FetchResult:
        """
        Lease up to max_count messages for visibility_time seconds.

        Leased messages are hidden from other consumers until the lease
        expires or they are deleted.
        """
        ...

    async def pop(self, queue_name: str) -> FetchResult:
        """Fetch and remove messages atomically, up to the backend's batch size."""
        ...

    async def delete(self, queue_name: str, message_id: int) -> OperationResult:
        """Permanently remove a message."""
        ...
