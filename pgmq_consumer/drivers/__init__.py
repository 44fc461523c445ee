"""
Queue drivers.
Backends the consumer can poll, all implementing QueueDriver.
"""

from pgmq_consumer.drivers.base import QueueDriver
from pgmq_consumer.drivers.memory import InMemoryQueueDriver
from pgmq_consumer.drivers.postgres import PostgresQueueDriver
from pgmq_consumer.drivers.supabase import SupabaseQueueDriver

__all__ = [
    "QueueDriver",
    "PostgresQueueDriver",
    "SupabaseQueueDriver",
    "InMemoryQueueDriver",
]
