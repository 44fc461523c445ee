"""
Queue driver for Supabase Queues.

Supabase exposes pgmq through PostgREST as RPC functions in the
pgmq_public schema; this driver calls them over HTTP with httpx.
"""

import logging
from typing import Any

import httpx

from pgmq_consumer.cancellation import AbortSignal
from pgmq_consumer.config import get_settings
from pgmq_consumer.constants import DEFAULT_SUPABASE_SCHEMA
from pgmq_consumer.errors import ConfigurationError, DriverError
from pgmq_consumer.types import FetchResult, Message, OperationResult, Payload

logger = logging.getLogger(__name__)


class SupabaseRPCError(Exception):
    """PostgREST answered an RPC call with a non-2xx status."""

    def __init__(self, function: str, status_code: int, body: str):
        self.function = function
        self.status_code = status_code
        self.body = body
        super().__init__(f"rpc/{function} returned HTTP {status_code}: {body}")


class SupabaseQueueDriver:
    """
    pgmq driver for Supabase, speaking PostgREST RPC.

    Either pass a configured httpx.AsyncClient or let the driver build one
    from url and key. A client built by the driver is closed by close().
    """

    def __init__(
        self,
        url: str,
        key: str,
        schema: str = DEFAULT_SUPABASE_SCHEMA,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the driver.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            key: API key (anon or service role).
            schema: Schema exposing the queue RPC functions.
            client: Optional preconfigured HTTP client.
            timeout: Request timeout in seconds for a driver-built client.
        """
        if not url or not key:
            raise ConfigurationError("Supabase url and key are required")

        self._rpc_base = f"{url.rstrip('/')}/rest/v1/rpc"
        self._schema = schema
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Profile": schema,
            "Accept-Profile": schema,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls) -> "SupabaseQueueDriver":
        """Create a driver from the supabase_* settings."""
        settings = get_settings()
        return cls(
            url=settings.supabase_url or "",
            key=settings.supabase_key or "",
            schema=settings.supabase_schema,
            timeout=settings.supabase_timeout_seconds,
        )

    async def close(self) -> None:
        """Close the HTTP client if this driver created it."""
        if self._owns_client:
            await self._client.aclose()

    async def send(
        self,
        queue_name: str,
        payload: Payload,
        signal: AbortSignal | None = None,
    ) -> OperationResult:
        """Enqueue a message via rpc/send."""
        params = {"queue_name": queue_name, "message": payload, "sleep_seconds": 0}
        try:
            work = self._rpc("send", params)
            if signal is not None:
                await signal.guard(work)
            else:
                await work
        except Exception as e:
            logger.warning(
                "Supabase send failed",
                extra={"queue_name": queue_name, "error": str(e)},
            )
            return OperationResult(error=DriverError.from_exception("send", queue_name, e))

        return OperationResult()

    async def get(
        self,
        queue_name: str,
        visibility_time: int,
        max_count: int,
    ) -> FetchResult:
        """Lease messages via rpc/read."""
        params = {
            "queue_name": queue_name,
            "sleep_seconds": visibility_time,
            "n": max_count,
        }
        try:
            data = await self._rpc("read", params)
            messages = self._to_messages(data)
        except Exception as e:
            return FetchResult(error=DriverError.from_exception("read", queue_name, e))

        return FetchResult(messages=messages)

    async def pop(self, queue_name: str) -> FetchResult:
        """Fetch and remove messages via rpc/pop."""
        try:
            data = await self._rpc("pop", {"queue_name": queue_name})
            messages = self._to_messages(data)
        except Exception as e:
            return FetchResult(error=DriverError.from_exception("pop", queue_name, e))

        return FetchResult(messages=messages)

    async def delete(self, queue_name: str, message_id: int) -> OperationResult:
        """Delete a message via rpc/delete."""
        params = {"queue_name": queue_name, "message_id": message_id}
        try:
            await self._rpc("delete", params)
        except Exception as e:
            return OperationResult(error=DriverError.from_exception("delete", queue_name, e))

        return OperationResult()

    async def _rpc(self, function: str, params: dict[str, Any]) -> Any:
        response = await self._client.post(
            f"{self._rpc_base}/{function}",
            json=params,
            headers=self._headers,
        )
        if not response.is_success:
            raise SupabaseRPCError(function, response.status_code, response.text[:1000])
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _to_messages(data: Any) -> list[Message]:
        # pop may come back as a single object rather than a list
        if data is None:
            return []
        if isinstance(data, dict):
            data = [data]
        return [Message.model_validate(row) for row in data]
