"""
In-process queue driver with pgmq lease semantics.

Useful for tests and local development: read leases messages and bumps
read_ct, leases expire after the visibility time, pop removes.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import count

from pgmq_consumer.cancellation import AbortSignal
from pgmq_consumer.errors import AbortError, DriverError
from pgmq_consumer.types import FetchResult, Message, OperationResult, Payload


@dataclass
class _Entry:
    """A stored message."""

    msg_id: int
    read_ct: int
    enqueued_at: datetime
    vt: datetime
    message: Payload

    def to_message(self) -> Message:
        return Message(
            msg_id=self.msg_id,
            read_ct=self.read_ct,
            enqueued_at=self.enqueued_at,
            vt=self.vt,
            message=dict(self.message),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryQueueDriver:
    """
    Queue driver storing messages in memory.

    Queues are created on first send. Message ids are unique per driver.
    """

    def __init__(self, pop_batch_size: int = 1):
        """
        Initialize an empty driver.

        Args:
            pop_batch_size: Number of messages one pop returns at most.
        """
        self._queues: dict[str, dict[int, _Entry]] = defaultdict(dict)
        self._ids = count(1)
        self._lock = asyncio.Lock()
        self.pop_batch_size = pop_batch_size

    async def send(
        self,
        queue_name: str,
        payload: Payload,
        signal: AbortSignal | None = None,
    ) -> OperationResult:
        """Store a new, immediately visible message."""
        if signal is not None and signal.aborted:
            return OperationResult(
                error=DriverError.from_exception(
                    "send", queue_name, AbortError(signal.reason or "aborted")
                )
            )

        async with self._lock:
            now = _now()
            msg_id = next(self._ids)
            self._queues[queue_name][msg_id] = _Entry(
                msg_id=msg_id,
                read_ct=0,
                enqueued_at=now,
                vt=now,
                message=dict(payload),
            )
        return OperationResult()

    async def get(
        self,
        queue_name: str,
        visibility_time: int,
        max_count: int,
    ) -> FetchResult:
        """Lease up to max_count visible messages, oldest first."""
        async with self._lock:
            now = _now()
            visible = [
                entry
                for entry in sorted(self._queues[queue_name].values(), key=lambda e: e.msg_id)
                if entry.vt <= now
            ][:max_count]

            for entry in visible:
                entry.read_ct += 1
                entry.vt = now + timedelta(seconds=visibility_time)

            return FetchResult(messages=[entry.to_message() for entry in visible])

    async def pop(self, queue_name: str) -> FetchResult:
        """Remove and return up to pop_batch_size visible messages."""
        async with self._lock:
            now = _now()
            queue = self._queues[queue_name]
            visible = [
                entry
                for entry in sorted(queue.values(), key=lambda e: e.msg_id)
                if entry.vt <= now
            ][: self.pop_batch_size]

            for entry in visible:
                del queue[entry.msg_id]

            return FetchResult(messages=[entry.to_message() for entry in visible])

    async def delete(self, queue_name: str, message_id: int) -> OperationResult:
        """Remove a message. Deleting an unknown id is not an error."""
        async with self._lock:
            self._queues[queue_name].pop(message_id, None)
        return OperationResult()

    def size(self, queue_name: str) -> int:
        """Number of messages stored in a queue, leased or not."""
        return len(self._queues[queue_name])

    def payloads(self, queue_name: str) -> list[Payload]:
        """Payloads stored in a queue, oldest first."""
        entries = sorted(self._queues[queue_name].values(), key=lambda e: e.msg_id)
        return [dict(entry.message) for entry in entries]
