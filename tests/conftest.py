"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import CollectorRegistry

from pgmq_consumer.observability.metrics import MetricsCollector
from pgmq_consumer.types import FetchResult, Message, OperationResult

# Postgres with the pgmq extension, for driver integration tests
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on its own registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Factory for queue messages."""

    def _make(msg_id: int = 1, read_ct: int = 1, **payload: Any) -> Message:
        now = datetime.now(timezone.utc)
        return Message(
            msg_id=msg_id,
            read_ct=read_ct,
            enqueued_at=now,
            vt=now + timedelta(seconds=30),
            message=payload or {"foo": "bar"},
        )

    return _make


@pytest.fixture
def driver() -> MagicMock:
    """Queue driver double returning empty, successful results."""
    driver = MagicMock()
    driver.get = AsyncMock(return_value=FetchResult(messages=[]))
    driver.pop = AsyncMock(return_value=FetchResult(messages=[]))
    driver.delete = AsyncMock(return_value=OperationResult())
    driver.send = AsyncMock(return_value=OperationResult())
    return driver


@pytest.fixture
def read_options() -> dict[str, Any]:
    """Single-cycle read consumer options."""
    return {
        "queue_name": "q",
        "consume_type": "read",
        "visibility_time": 1,
        "pool_size": 1,
        "poll_interval_ms": 1,
        "enabled_polling": False,
    }
