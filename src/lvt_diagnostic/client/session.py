"""Authenticated request context for the batched list/query endpoint.

A ``ClientSession`` accumulates queued queries and sends them in one round
trip. Each dispatch freezes the pending queries into a ``PendingOperation``
with its own sequence number; a throttled operation can be resent verbatim
through :meth:`ClientSession.retry`.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from lvt_diagnostic.client.decorator import set_traffic_decorator
from lvt_diagnostic.client.models import PendingOperation, QueryHandle
from lvt_diagnostic.exceptions import ServerError, SessionClosedError, TransportError

if TYPE_CHECKING:
    from lvt_diagnostic.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

PROCESS_QUERY_PATH = "/_vti_bin/client.svc/ProcessQuery"

RequestHook = Callable[[httpx.Request], None]


class ClientSession:
    """One logical connection to the remote site."""

    def __init__(
        self,
        url: str,
        auth: httpx.Auth | tuple[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(auth=auth)
        self._pending: list[QueryHandle] = []
        self._request_hooks: list[RequestHook] = []
        self._query_ids = itertools.count(1)
        self._sequence = itertools.count(1)
        self._closed = False

    @property
    def endpoint(self) -> str:
        return f"{self.url}{PROCESS_QUERY_PATH}"

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def request_hooks(self) -> tuple[RequestHook, ...]:
        return tuple(self._request_hooks)

    @property
    def closed(self) -> bool:
        return self._closed

    def add_request_hook(self, hook: RequestHook) -> None:
        """Register a hook run on every request right before it is sent."""
        if hook not in self._request_hooks:
            self._request_hooks.append(hook)

    def queue(self, action: str, **params: Any) -> QueryHandle:
        """Add a query to the pending batch and return its handle."""
        self._ensure_open()
        handle = QueryHandle(query_id=next(self._query_ids), action=action, params=params)
        self._pending.append(handle)
        return handle

    def dispatch(self) -> PendingOperation | None:
        """Send every pending query in one round trip.

        Returns:
            The transmitted operation, or ``None`` when nothing was queued.

        Raises:
            TransportError: The transmission failed; ``failed_operation``
                holds the operation so it can be passed to :meth:`retry`.
            ServerError: The service reported a processing error.
        """
        self._ensure_open()
        if not self._pending:
            return None
        operation = PendingOperation(
            sequence=next(self._sequence), queries=tuple(self._pending)
        )
        self._pending.clear()
        self._transmit(operation)
        return operation

    def retry(self, operation: PendingOperation) -> PendingOperation:
        """Resend a previously transmitted operation unchanged."""
        self._ensure_open()
        self._transmit(operation)
        return operation

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ClientSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session for {self.url} is closed.")

    def _transmit(self, operation: PendingOperation) -> None:
        request = self._client.build_request(
            "POST", self.endpoint, json=operation.to_payload()
        )
        for hook in self._request_hooks:
            hook(request)

        operation.transmissions += 1
        logger.debug(
            "operation_transmitting",
            sequence=operation.sequence,
            queries=len(operation.queries),
            transmission=operation.transmissions,
        )

        try:
            response = self._client.send(request)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Transmission of operation {operation.sequence} failed: {exc}",
                failed_operation=operation,
            ) from exc

        if response.is_error:
            raise TransportError(
                f"The remote server returned an error: ({response.status_code}) "
                f"{response.reason_phrase}.",
                status_code=response.status_code,
                headers=response.headers,
                failed_operation=operation,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise TransportError(
                "The remote server returned a non-JSON-object body "
                f"with status {response.status_code}.",
                status_code=response.status_code,
                headers=response.headers,
                failed_operation=operation,
                body=response.text,
            )

        self._resolve(operation, payload)

    @staticmethod
    def _resolve(operation: PendingOperation, payload: dict[str, Any]) -> None:
        error = payload.get("error")
        if isinstance(error, dict):
            raise ServerError(
                str(error.get("message", "Unknown server error")),
                error_type_name=str(error.get("type", "")),
                error_code=error.get("code"),
            )

        results = payload.get("results")
        values = {
            entry.get("id"): entry.get("value")
            for entry in (results if isinstance(results, list) else [])
            if isinstance(entry, dict)
        }
        for query in operation.queries:
            if query.query_id in values:
                query.resolve(values[query.query_id])


@contextmanager
def open_session(settings: Settings) -> Iterator[ClientSession]:
    """Open a decorated, authenticated session and close it on every exit path."""
    site = settings.site
    auth = (
        httpx.BasicAuth(site.username, site.password.get_secret_value())
        if site.username
        else None
    )
    session = ClientSession(site.url, auth=auth)
    set_traffic_decorator(
        session,
        user_agent=settings.transport.user_agent,
        timeout_ms=settings.transport.timeout_ms,
    )
    try:
        yield session
    finally:
        session.close()
