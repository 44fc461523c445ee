"""
Unit tests for the in-memory queue driver.
"""

import pytest

from pgmq_consumer.cancellation import AbortController
from pgmq_consumer.drivers import InMemoryQueueDriver, QueueDriver
from pgmq_consumer.errors import is_abort_error


class TestInMemoryQueueDriver:
    """Tests for InMemoryQueueDriver."""

    @pytest.fixture
    def queue(self) -> InMemoryQueueDriver:
        return InMemoryQueueDriver()

    def test_implements_protocol(self, queue):
        assert isinstance(queue, QueueDriver)

    async def test_get_leases_messages(self, queue):
        """Test read bumps read_ct and hides messages for the lease."""
        await queue.send("jobs", {"n": 1})
        await queue.send("jobs", {"n": 2})

        first = await queue.get("jobs", visibility_time=30, max_count=5)
        second = await queue.get("jobs", visibility_time=30, max_count=5)

        assert first.ok
        assert [m.payload for m in first.messages] == [{"n": 1}, {"n": 2}]
        assert all(m.read_count == 1 for m in first.messages)
        assert second.messages == []
        assert queue.size("jobs") == 2

    async def test_get_respects_max_count(self, queue):
        for n in range(3):
            await queue.send("jobs", {"n": n})

        result = await queue.get("jobs", visibility_time=30, max_count=2)

        assert len(result.messages) == 2

    async def test_expired_lease_is_redelivered(self, queue):
        """Test a message is visible again once its lease expires."""
        await queue.send("jobs", {"n": 1})

        await queue.get("jobs", visibility_time=0, max_count=1)
        again = await queue.get("jobs", visibility_time=0, max_count=1)

        assert again.messages[0].read_count == 2

    async def test_pop_removes(self, queue):
        await queue.send("jobs", {"n": 1})
        await queue.send("jobs", {"n": 2})

        result = await queue.pop("jobs")

        assert [m.payload for m in result.messages] == [{"n": 1}]
        assert queue.payloads("jobs") == [{"n": 2}]

    async def test_delete(self, queue):
        await queue.send("jobs", {"n": 1})
        leased = await queue.get("jobs", visibility_time=30, max_count=1)

        result = await queue.delete("jobs", leased.messages[0].id)
        missing = await queue.delete("jobs", 999)

        assert result.ok and missing.ok
        assert queue.size("jobs") == 0

    async def test_send_with_aborted_signal(self, queue):
        """Test sending under an aborted signal reports an abort."""
        controller = AbortController()
        controller.abort()

        result = await queue.send("jobs", {"n": 1}, controller.signal)

        assert not result.ok
        assert is_abort_error(result.error)
        assert queue.size("jobs") == 0
