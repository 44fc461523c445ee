"""
Consumer engine.

The consumer repeatedly fetches a batch from its queue driver, runs every
message of the batch concurrently under one deadline, acknowledges the
ones that succeed and reroutes the ones past their retry budget to the
dead-letter queue. Failures never stop the loop; they become events.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pgmq_consumer.cancellation import AbortController, AbortSignal
from pgmq_consumer.constants import (
    SPAN_HANDLE_MESSAGE,
    SPAN_POLL_CYCLE,
    SPAN_SEND_TO_DLQ,
    ConsumerEvent,
    ConsumeType,
    HandlerErrorPolicy,
)
from pgmq_consumer.drivers.base import QueueDriver
from pgmq_consumer.errors import AbortError, ConfigurationError, is_abort_error
from pgmq_consumer.events import EventEmitter, Listener
from pgmq_consumer.observability.metrics import MetricsCollector, get_metrics
from pgmq_consumer.observability.tracing import get_tracer
from pgmq_consumer.types import ConsumerOptions, CycleReport, Message, Payload

logger = logging.getLogger(__name__)

# Type alias for message handlers
MessageHandler = Callable[[Payload, AbortSignal], Awaitable[None]]

# Per-message outcomes
OUTCOME_FINISHED = "finished"
OUTCOME_DEAD_LETTERED = "dead_lettered"
OUTCOME_FAILED = "failed"
OUTCOME_ABORTED = "aborted"


class Consumer:
    """
    Polling consumer for one queue.

    Features:
    - pop or read (lease) consumption, batches of up to pool_size
    - One cancellation signal and deadline per batch
    - Delete-on-success for leased messages
    - Dead-letter routing once read_count exceeds the retry budget
    - finish / send-to-dlq / error / abort-error events

    Example:
        consumer = Consumer(
            {"queue_name": "jobs", "consume_type": "read", "visibility_time": 30},
            handle,
            PostgresQueueDriver.from_settings(),
        )
        consumer.on("error", lambda err: print(err))
        await consumer.start()
    """

    def __init__(
        self,
        options: ConsumerOptions | Mapping[str, Any],
        handler: MessageHandler,
        driver: QueueDriver,
        *,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            options: Consumer options, or a mapping validated into them.
            handler: Coroutine function called with each payload and the
                batch's cancellation signal.
            driver: Queue backend.
            metrics: Metrics collector. Defaults to the process-wide one.

        Raises:
            ConfigurationError: If the options are invalid, including a
                dead-letter queue without a retry threshold.
        """
        if isinstance(options, ConsumerOptions):
            self.options = options
        else:
            try:
                self.options = ConsumerOptions.model_validate(dict(options))
            except ValidationError as e:
                raise ConfigurationError(_first_error(e)) from e

        self._handler = handler
        self._driver = driver
        self._events = EventEmitter()
        self._metrics = metrics or get_metrics()

        self._running = False
        self._next_poll: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: ConsumerEvent | str, listener: Listener) -> Listener:
        """Register a listener for an event."""
        return self._events.on(event, listener)

    def once(self, event: ConsumerEvent | str, listener: Listener) -> Listener:
        """Register a listener called at most once."""
        return self._events.once(event, listener)

    def off(self, event: ConsumerEvent | str, listener: Listener) -> None:
        """Remove a listener."""
        self._events.off(event, listener)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        """Whether start() is looping."""
        return self._running

    async def start(self) -> CycleReport | None:
        """
        Run poll cycles until polling is disabled or stop() is called.

        With enabled_polling false exactly one cycle runs.

        Returns:
            The report of the last cycle, or None if none completed.

        Raises:
            RuntimeError: If the consumer is already running.
        """
        if self._running:
            raise RuntimeError("Consumer is already running")

        logger.info(
            "Consumer starting",
            extra={
                "queue_name": self.options.queue_name,
                "consume_type": str(self.options.consume_type),
                "pool_size": self.options.pool_size,
                "enabled_polling": self.options.enabled_polling,
            },
        )

        self._running = True
        report: CycleReport | None = None

        try:
            while self._running:
                report = await self.run_cycle()

                if not self.options.enabled_polling or not self._running:
                    break

                if report.empty:
                    delay = self.options.empty_poll_interval_seconds
                else:
                    delay = self.options.poll_interval_seconds

                await self._wait_for_next_poll(delay)
        finally:
            self._running = False
            self._cancel_next_poll()
            logger.info("Consumer stopped", extra={"queue_name": self.options.queue_name})

        return report

    async def stop(self) -> None:
        """
        Stop polling.

        The pending wait for the next cycle is cancelled; a cycle already
        in flight settles before start() returns.
        """
        logger.info("Consumer stopping", extra={"queue_name": self.options.queue_name})
        self._running = False
        self._cancel_next_poll()

    async def _wait_for_next_poll(self, delay: float) -> None:
        """Replace the pending next-poll handle and wait for it."""
        self._cancel_next_poll()
        self._next_poll = asyncio.create_task(asyncio.sleep(delay))
        await asyncio.wait({self._next_poll})

    def _cancel_next_poll(self) -> None:
        if self._next_poll is not None:
            self._next_poll.cancel()
            self._next_poll = None

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """
        Run one fetch-and-dispatch cycle.

        Cycle-level failures are emitted as events and listed in the
        report; they are not raised.

        Returns:
            CycleReport for the cycle.
        """
        queue_name = self.options.queue_name
        report = CycleReport()

        async with self._cycle_lock:
            with get_tracer().start_as_current_span(SPAN_POLL_CYCLE) as span:
                span.set_attribute("queue_name", queue_name)

                try:
                    messages = await self._fetch()
                    report.fetched = len(messages)
                    span.set_attribute("fetched", report.fetched)

                    if messages:
                        logger.debug(
                            f"Fetched {len(messages)} messages",
                            extra={"queue_name": queue_name},
                        )
                        await self._dispatch(messages, report)
                except Exception as e:
                    await self._report_error(e, report)

        if report.errors:
            result = "error"
        elif report.fetched == 0:
            result = "empty"
        else:
            result = "processed"
        self._metrics.record_cycle(queue_name, result)

        return report

    async def _fetch(self) -> list[Message]:
        """
        Fetch the next batch according to consume_type.

        Raises:
            ConfigurationError: If read is configured without visibility_time.
            Exception: The driver's reported error.
        """
        options = self.options

        if options.consume_type == ConsumeType.READ:
            if not options.visibility_time or options.visibility_time <= 0:
                raise ConfigurationError("visibility_time is required for read")
            result = await self._driver.get(
                options.queue_name,
                options.visibility_time,
                options.pool_size,
            )
        else:
            result = await self._driver.pop(options.queue_name)

        if result.error is not None:
            raise result.error

        return list(result.messages or [])

    async def _dispatch(self, messages: list[Message], report: CycleReport) -> None:
        """
        Process a batch concurrently under one deadline and wait for all of it.

        A failing message never cancels or blocks its siblings.
        """
        queue_name = self.options.queue_name

        controller = AbortController()
        controller.abort_after(self.options.deadline_seconds)
        self._metrics.set_in_flight(queue_name, len(messages))

        try:
            outcomes = await asyncio.gather(
                *(self._process_message(message, controller.signal) for message in messages),
                return_exceptions=True,
            )
        finally:
            controller.cancel_deadline()
            self._metrics.set_in_flight(queue_name, 0)

        for message, outcome in zip(messages, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                outcome = AbortError(f"Processing of message {message.id} was cancelled")

            if isinstance(outcome, BaseException):
                report.failed += 1
                await self._report_error(outcome, report)
            elif outcome == OUTCOME_FINISHED:
                report.finished += 1
            elif outcome == OUTCOME_DEAD_LETTERED:
                report.dead_lettered += 1
            else:
                report.failed += 1

    # ------------------------------------------------------------------
    # Message
    # ------------------------------------------------------------------

    async def _process_message(self, message: Message, signal: AbortSignal) -> str:
        """
        Route one message to the dead-letter queue or to the handler.

        Returns:
            The outcome of the message.
        """
        queue_name = self.options.queue_name
        start_time = time.monotonic()
        outcome = OUTCOME_FAILED

        try:
            if self.options.exceeds_retry_budget(message.read_count):
                outcome = await self._send_to_dead_letter(message, signal)
            else:
                outcome = await self._handle(message, signal)
            return outcome
        except Exception as e:
            outcome = OUTCOME_ABORTED if is_abort_error(e) else OUTCOME_FAILED
            raise
        finally:
            self._metrics.record_message(
                queue=queue_name,
                outcome=outcome,
                duration_seconds=time.monotonic() - start_time,
            )

    async def _handle(self, message: Message, signal: AbortSignal) -> str:
        """Run the handler, then acknowledge and emit finish."""
        with get_tracer().start_as_current_span(SPAN_HANDLE_MESSAGE) as span:
            span.set_attribute("msg_id", message.id)
            span.set_attribute("read_ct", message.read_count)

            try:
                await self._handler(message.payload, signal)
            except Exception as e:
                if is_abort_error(e) or self.options.handler_error_policy == HandlerErrorPolicy.REPORT:
                    raise
                logger.warning(
                    "Handler failed, error absorbed",
                    extra={
                        "queue_name": self.options.queue_name,
                        "msg_id": message.id,
                        "error": str(e),
                    },
                )
                return OUTCOME_FAILED

        await self._acknowledge(message, signal)
        await self._events.emit(ConsumerEvent.FINISH, message)
        return OUTCOME_FINISHED

    async def _send_to_dead_letter(self, message: Message, signal: AbortSignal) -> str:
        """Forward a message to the dead-letter queue and remove the original."""
        dead_letter_queue = self.options.dead_letter_queue_name

        with get_tracer().start_as_current_span(SPAN_SEND_TO_DLQ) as span:
            span.set_attribute("msg_id", message.id)
            span.set_attribute("dead_letter_queue", dead_letter_queue)

            result = await self._driver.send(dead_letter_queue, message.payload, signal)
            if result.error is not None:
                raise result.error

        logger.warning(
            "Message exceeded retry budget, sent to dead-letter queue",
            extra={
                "queue_name": self.options.queue_name,
                "dead_letter_queue": dead_letter_queue,
                "msg_id": message.id,
                "read_ct": message.read_count,
            },
        )

        await self._acknowledge(message, signal)
        await self._events.emit(ConsumerEvent.SEND_TO_DLQ, message)
        return OUTCOME_DEAD_LETTERED

    async def _acknowledge(self, message: Message, signal: AbortSignal) -> None:
        """
        Delete a leased message from the source queue.

        Popped messages are already gone. Nothing is deleted once the signal
        has fired: the lease may have expired and the message been
        redelivered elsewhere.
        """
        if self.options.consume_type != ConsumeType.READ:
            return

        if signal.aborted:
            logger.warning(
                "Deadline passed, delete skipped",
                extra={"queue_name": self.options.queue_name, "msg_id": message.id},
            )
            return

        result = await self._driver.delete(self.options.queue_name, message.id)
        if result.error is not None:
            raise result.error

    async def _report_error(self, error: BaseException, report: CycleReport) -> None:
        """Classify a failure and emit it as abort-error or error."""
        queue_name = self.options.queue_name
        report.errors.append(error)

        if is_abort_error(error):
            logger.warning(
                "Cycle aborted",
                extra={"queue_name": queue_name, "error": str(error)},
            )
            self._metrics.record_error(queue_name, "abort")
            await self._events.emit(ConsumerEvent.ABORT_ERROR, error)
        else:
            logger.error(
                f"Error in consumer cycle: {error}",
                extra={"queue_name": queue_name},
                exc_info=error,
            )
            self._metrics.record_error(queue_name, "error")
            await self._events.emit(ConsumerEvent.ERROR, error)


def _first_error(error: ValidationError) -> str:
    """Readable message for the first validation problem."""
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(error))
    # model-level validators report "Value error, <message>"
    message = message.removeprefix("Value error, ")
    return f"{location}: {message}" if location else message
