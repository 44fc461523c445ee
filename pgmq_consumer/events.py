"""
Per-consumer event emitter.
"""

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pgmq_consumer.constants import ConsumerEvent

logger = logging.getLogger(__name__)

# Listeners may be plain functions or coroutine functions
Listener = Callable[[Any], Awaitable[None] | None]


@dataclass
class _Registration:
    """A listener and whether it fires only once."""

    listener: Listener
    once: bool = False


class EventEmitter:
    """
    Registry of listeners for consumer events.

    Each consumer owns its own emitter. Listeners run in registration
    order; an exception raised by one is logged and does not prevent the
    others from running.
    """

    def __init__(self):
        """Initialize an emitter with no listeners."""
        self._listeners: dict[ConsumerEvent, list[_Registration]] = defaultdict(list)

    def on(self, event: ConsumerEvent | str, listener: Listener) -> Listener:
        """
        Register a listener for an event.

        Args:
            event: Event name.
            listener: Callable receiving the event payload.

        Returns:
            The listener, so this can be used as a decorator target.
        """
        self._listeners[ConsumerEvent(event)].append(_Registration(listener))
        return listener

    def once(self, event: ConsumerEvent | str, listener: Listener) -> Listener:
        """Register a listener that is removed after its first call."""
        self._listeners[ConsumerEvent(event)].append(_Registration(listener, once=True))
        return listener

    def off(self, event: ConsumerEvent | str, listener: Listener) -> None:
        """Remove every registration of a listener for an event."""
        event = ConsumerEvent(event)
        self._listeners[event] = [
            registration
            for registration in self._listeners[event]
            if registration.listener is not listener
        ]

    def listener_count(self, event: ConsumerEvent | str) -> int:
        """Number of listeners registered for an event."""
        return len(self._listeners[ConsumerEvent(event)])

    async def emit(self, event: ConsumerEvent, payload: Any) -> int:
        """
        Call every listener registered for an event.

        Args:
            event: Event name.
            payload: Message or exception passed to each listener.

        Returns:
            Number of listeners called.
        """
        registrations = list(self._listeners[event])
        if not registrations:
            return 0

        fired_once = [r for r in registrations if r.once]
        if fired_once:
            self._listeners[event] = [
                r for r in self._listeners[event]
                if not any(r is fired for fired in fired_once)
            ]

        for registration in registrations:
            try:
                result = registration.listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event listener raised",
                    extra={"event": str(event)},
                )

        return len(registrations)
