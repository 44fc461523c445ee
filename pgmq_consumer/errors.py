"""
Exception types raised and reported by the consumer.
"""

import asyncio


class ConsumerError(Exception):
    """Base class for all consumer errors."""


class ConfigurationError(ConsumerError):
    """Invalid or incomplete consumer options."""


class DriverError(ConsumerError):
    """
    A queue driver operation failed.

    Drivers never raise across their boundary; they return this error in
    their result and the consumer decides how to surface it.
    """

    def __init__(self, operation: str, queue_name: str, detail: str | None = None):
        self.operation = operation
        self.queue_name = queue_name
        message = f"{operation} on queue '{queue_name}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @classmethod
    def from_exception(
        cls,
        operation: str,
        queue_name: str,
        exc: BaseException,
    ) -> "DriverError":
        """Wrap a backend exception, keeping it as the cause."""
        error = cls(operation, queue_name, str(exc) or type(exc).__name__)
        error.__cause__ = exc
        return error


class AbortError(ConsumerError):
    """Work was abandoned because its cancellation signal fired."""

    def __init__(self, reason: str = "The operation was aborted"):
        self.reason = reason
        super().__init__(reason)


def is_abort_error(exc: BaseException) -> bool:
    """
    Check whether an exception originates from cancellation or a timeout.

    Args:
        exc: The exception to classify.

    Returns:
        True if the exception, or its direct cause, is an abort or timeout.
    """
    abort_types = (AbortError, TimeoutError, asyncio.TimeoutError)
    if isinstance(exc, abort_types):
        return True
    return isinstance(exc.__cause__, abort_types)
