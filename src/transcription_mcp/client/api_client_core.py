"""Transcription store client - core REST primitives and response handling.

The store is a Supabase/PostgREST endpoint: every table is exposed under
``/rest/v1/<table>``, rows are filtered with ``column=op.value`` query
parameters and write behaviour is selected with the ``Prefer`` header.

Requests are never retried here. A failed write is reported to the caller
(the editing session), which answers it by reloading the tree.
"""

import json
import sys
from datetime import datetime
from typing import Any

import httpx

from ..models import (
    APIConfiguration,
    AuthenticationError,
    NetworkError,
    NodeNotFoundError,
    RateLimitError,
    StoreRejectedError,
    TimeoutError,
)
from .rate_limiter import AdaptiveRateLimiter

REST_PREFIX = "/rest/v1"


def log_event(message: str, component: str = "STORE") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


def _log(message: str, component: str = "STORE") -> None:
    """Unified log wrapper used throughout the client package.

    All client-side logging goes through the same DATETIME+TAG prefix on
    stderr, which stays visible in the MCP connector console (the stdio
    transport owns stdout).
    """
    log_event(message, component)


class _ClientLogger:
    """Lightweight logger that delegates to _log / log_event.

    Offers the logger.info/warning/error surface without relying on the
    logging module. Only the first message argument is used.
    """

    def __init__(self, component: str = "STORE") -> None:
        self._component = component

    def _msg(self, msg: object) -> str:
        try:
            return str(msg)
        except Exception:
            return repr(msg)

    def info(self, msg: object, *args: object, **kwargs: object) -> None:  # noqa: D401
        """Info-level log (no explicit level tag; message already descriptive)."""
        _log(self._msg(msg), self._component)

    def warning(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"WARNING: {self._msg(msg)}", self._component)

    def error(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"ERROR: {self._msg(msg)}", self._component)

    def debug(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"DEBUG: {self._msg(msg)}", self._component)


class TranscriptionStoreCore:
    """Core store client - single-table CRUD over PostgREST."""

    def __init__(
        self,
        config: APIConfiguration,
        rate_limiter: AdaptiveRateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the store client.

        Args:
            config: endpoint, key and timeout
            rate_limiter: shared limiter acquired before every request (optional)
            transport: custom httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = rate_limiter
        self._transport = transport
        self._logger = _ClientLogger("STORE")

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            key = self.config.api_key.get_secret_value()
            headers = {
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TranscriptionStoreCore":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _handle_response(self, response: httpx.Response) -> Any:
        """Map a store response to its payload or to the error taxonomy."""
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid API key or unauthorized access")

        if response.status_code == 404:
            raise NodeNotFoundError(message=f"Resource not found: {response.request.url.path}")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(retry_after=float(retry_after) if retry_after else None)

        if response.status_code >= 500:
            raise NetworkError(f"Server error: {response.status_code}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get("message") or error_data.get("error") or "Store request failed"
            except (json.JSONDecodeError, AttributeError):
                message = "Store request failed"
            raise StoreRejectedError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except json.JSONDecodeError as err:
            raise NetworkError("Invalid response format from store") from err

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        params: dict[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        if self._rate_limiter:
            await self._rate_limiter.acquire()

        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self.client.request(
                method, f"{REST_PREFIX}/{table}", params=params, json=body, headers=headers
            )
        except httpx.TimeoutException as err:
            self._logger.warning(f"Timeout on {operation}: {err}")
            raise TimeoutError(operation) from err
        except httpx.HTTPError as err:
            self._logger.warning(f"Transport error on {operation}: {err}")
            raise NetworkError(f"{operation}: {err}") from err

        try:
            data = await self._handle_response(response)
        except RateLimitError as err:
            if self._rate_limiter:
                self._rate_limiter.on_rate_limit(err.retry_after)
            self._logger.warning(f"Rate limited on {operation}. Retry after {err.retry_after}s")
            raise

        if self._rate_limiter:
            self._rate_limiter.on_success()
        return data

    async def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert one or more rows (single POST)."""
        await self._request("POST", table, f"insert {table}", body=rows, prefer="return=minimal")

    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert-or-update rows by primary key (used for bulk position updates)."""
        await self._request(
            "POST",
            table,
            f"upsert {table}",
            params={"on_conflict": "id"},
            body=rows,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def update_row(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Update one row by id; NodeNotFoundError when no row matched."""
        data = await self._request(
            "PATCH",
            table,
            f"update {table}",
            params={"id": f"eq.{row_id}"},
            body=fields,
            prefer="return=representation",
        )
        if not data:
            raise NodeNotFoundError(node_id=row_id, message=f"No {table} row to update")
        return data[0]

    async def delete_row(self, table: str, row_id: str) -> None:
        """Delete one row by id; NodeNotFoundError when no row matched."""
        data = await self._request(
            "DELETE",
            table,
            f"delete {table}",
            params={"id": f"eq.{row_id}"},
            prefer="return=representation",
        )
        if not data:
            raise NodeNotFoundError(node_id=row_id, message=f"No {table} row to delete")

    async def select_rows(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        data = await self._request("GET", table, f"select {table}", params=params)
        return data or []
