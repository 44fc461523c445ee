"""
Queue driver for the pgmq Postgres extension.

Calls the extension's SQL functions (send, read, pop, delete) through an
async SQLAlchemy engine.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from pgmq_consumer.cancellation import AbortSignal
from pgmq_consumer.config import get_settings
from pgmq_consumer.constants import DEFAULT_PGMQ_SCHEMA
from pgmq_consumer.db import get_engine
from pgmq_consumer.errors import ConfigurationError, DriverError
from pgmq_consumer.observability.tracing import instrument_sqlalchemy
from pgmq_consumer.types import FetchResult, Message, OperationResult, Payload

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_MESSAGE_COLUMNS = "msg_id, read_ct, enqueued_at, vt, message"


def row_to_message(row: Mapping[str, Any]) -> Message:
    """
    Convert a pgmq message row into a Message.

    jsonb arrives as text when no codec is registered on the connection.
    """
    data = dict(row)
    payload = data.get("message")
    if isinstance(payload, (str, bytes)):
        data["message"] = json.loads(payload)
    return Message.model_validate(data)


class PostgresQueueDriver:
    """
    pgmq driver backed by an async SQLAlchemy engine.

    The engine is shared by every concurrent call; each call checks out
    its own connection from the engine's pool.
    """

    def __init__(self, engine: AsyncEngine, schema: str = DEFAULT_PGMQ_SCHEMA):
        """
        Initialize the driver.

        Args:
            engine: Async engine connected to a database with pgmq installed.
            schema: Schema holding the pgmq functions.

        Raises:
            ConfigurationError: If schema is not a plain SQL identifier.
        """
        if not _IDENTIFIER.match(schema):
            raise ConfigurationError(f"Invalid pgmq schema name: {schema!r}")

        self._engine = engine
        self._schema = schema

        self._send_sql = text(
            f"SELECT * FROM {schema}.send("
            "queue_name => CAST(:queue_name AS text), "
            "msg => CAST(:message AS jsonb))"
        )
        self._read_sql = text(
            f"SELECT {_MESSAGE_COLUMNS} FROM {schema}.read("
            "queue_name => CAST(:queue_name AS text), "
            "vt => CAST(:vt AS integer), "
            "qty => CAST(:qty AS integer))"
        )
        self._pop_sql = text(
            f"SELECT {_MESSAGE_COLUMNS} FROM {schema}.pop("
            "queue_name => CAST(:queue_name AS text))"
        )
        self._delete_sql = text(
            f"SELECT {schema}.delete("
            "queue_name => CAST(:queue_name AS text), "
            "msg_id => CAST(:msg_id AS bigint))"
        )

    @classmethod
    def from_settings(cls, instrument: bool = False) -> "PostgresQueueDriver":
        """
        Create a driver on the shared engine using the configured schema.

        Args:
            instrument: If True, trace the engine's queries with OpenTelemetry.
        """
        engine = get_engine()
        if instrument:
            instrument_sqlalchemy(engine)
        return cls(engine, schema=get_settings().pgmq_schema)

    @property
    def schema(self) -> str:
        """Schema holding the pgmq functions."""
        return self._schema

    async def send(
        self,
        queue_name: str,
        payload: Payload,
        signal: AbortSignal | None = None,
    ) -> OperationResult:
        """Enqueue a message with pgmq send."""
        try:
            work = self._send(queue_name, payload)
            if signal is not None:
                message_id = await signal.guard(work)
            else:
                message_id = await work
        except Exception as e:
            logger.warning(
                "pgmq send failed",
                extra={"queue_name": queue_name, "error": str(e)},
            )
            return OperationResult(error=DriverError.from_exception("send", queue_name, e))

        logger.debug(
            "Message sent",
            extra={"queue_name": queue_name, "msg_id": message_id},
        )
        return OperationResult()

    async def get(
        self,
        queue_name: str,
        visibility_time: int,
        max_count: int,
    ) -> FetchResult:
        """Lease messages with pgmq read."""
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    self._read_sql,
                    {"queue_name": queue_name, "vt": visibility_time, "qty": max_count},
                )
                rows = result.mappings().all()
            messages = [row_to_message(row) for row in rows]
        except Exception as e:
            return FetchResult(error=DriverError.from_exception("read", queue_name, e))

        return FetchResult(messages=messages)

    async def pop(self, queue_name: str) -> FetchResult:
        """Fetch and remove messages with pgmq pop."""
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(self._pop_sql, {"queue_name": queue_name})
                rows = result.mappings().all()
            messages = [row_to_message(row) for row in rows]
        except Exception as e:
            return FetchResult(error=DriverError.from_exception("pop", queue_name, e))

        return FetchResult(messages=messages)

    async def delete(self, queue_name: str, message_id: int) -> OperationResult:
        """Delete a message with pgmq delete."""
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    self._delete_sql,
                    {"queue_name": queue_name, "msg_id": message_id},
                )
        except Exception as e:
            return OperationResult(error=DriverError.from_exception("delete", queue_name, e))

        return OperationResult()

    async def _send(self, queue_name: str, payload: Payload) -> int:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                self._send_sql,
                {"queue_name": queue_name, "message": json.dumps(payload)},
            )
            return result.scalar_one()
