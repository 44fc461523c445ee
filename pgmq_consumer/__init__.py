"""
pgmq consumer

A polling consumer engine for database-backed message queues: fetches
batches through a pluggable driver, dispatches them to a handler with a
visibility-timeout deadline, acknowledges successes and reroutes poison
messages to a dead-letter queue.
"""

from pgmq_consumer.cancellation import AbortController, AbortSignal
from pgmq_consumer.constants import ConsumeType, ConsumerEvent, HandlerErrorPolicy
from pgmq_consumer.consumer import Consumer
from pgmq_consumer.drivers import (
    InMemoryQueueDriver,
    PostgresQueueDriver,
    QueueDriver,
    SupabaseQueueDriver,
)
from pgmq_consumer.errors import (
    AbortError,
    ConfigurationError,
    ConsumerError,
    DriverError,
)
from pgmq_consumer.types import ConsumerOptions, CycleReport, Message

__version__ = "1.0.0"

__all__ = [
    "Consumer",
    "ConsumerOptions",
    "ConsumeType",
    "ConsumerEvent",
    "HandlerErrorPolicy",
    "CycleReport",
    "Message",
    "QueueDriver",
    "PostgresQueueDriver",
    "SupabaseQueueDriver",
    "InMemoryQueueDriver",
    "AbortController",
    "AbortSignal",
    "ConsumerError",
    "ConfigurationError",
    "DriverError",
    "AbortError",
]
