"""
Type definitions for the consumer.
Contains the message model, consumer options and result types.
"""

from pgmq_consumer.types.message import Message, Payload
from pgmq_consumer.types.options import ConsumerOptions
from pgmq_consumer.types.results import CycleReport, FetchResult, OperationResult

__all__ = [
    "Message",
    "Payload",
    "ConsumerOptions",
    "FetchResult",
    "OperationResult",
    "CycleReport",
]
