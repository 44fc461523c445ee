"""
Application constants.
Centralized location for all constant values used across the consumer.
"""

from enum import StrEnum


class ConsumeType(StrEnum):
    """
    How messages are taken off the queue.

    - POP: fetch and remove atomically; nothing to acknowledge afterwards
    - READ: lease for the visibility time; deleted after successful handling
    """

    POP = "pop"
    READ = "read"


class ConsumerEvent(StrEnum):
    """
    Events emitted by a consumer.

    - FINISH: handler succeeded (payload: Message)
    - SEND_TO_DLQ: message forwarded to the dead-letter queue (payload: Message)
    - ABORT_ERROR: a cycle's cancellation/timeout fired (payload: exception)
    - ERROR: any other cycle-level failure (payload: exception)
    """

    FINISH = "finish"
    ERROR = "error"
    ABORT_ERROR = "abort-error"
    SEND_TO_DLQ = "send-to-dlq"


class HandlerErrorPolicy(StrEnum):
    """What happens to a handler exception that is not an abort."""

    REPORT = "report"
    ABSORB = "absorb"


# Default values
DEFAULT_POOL_SIZE = 1
DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_DEADLINE_SECONDS = 1
EMPTY_QUEUE_BACKOFF_FACTOR = 10
DEFAULT_PGMQ_SCHEMA = "pgmq"
DEFAULT_SUPABASE_SCHEMA = "pgmq_public"

# Metrics names
METRIC_MESSAGES = "pgmq_consumer_messages_total"
METRIC_CYCLES = "pgmq_consumer_cycles_total"
METRIC_ERRORS = "pgmq_consumer_errors_total"
METRIC_MESSAGE_DURATION = "pgmq_consumer_message_duration_seconds"
METRIC_IN_FLIGHT = "pgmq_consumer_in_flight_messages"

# Trace span names
SPAN_POLL_CYCLE = "poll_cycle"
SPAN_HANDLE_MESSAGE = "handle_message"
SPAN_SEND_TO_DLQ = "send_to_dead_letter"
