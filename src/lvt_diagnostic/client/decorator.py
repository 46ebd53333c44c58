"""Traffic decoration applied to every outbound transmission.

The remote service requires each request to identify the calling
application through its ``User-Agent`` and to run under a bounded timeout.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from lvt_diagnostic.config import DEFAULT_TIMEOUT_MS, DEFAULT_USER_AGENT

if TYPE_CHECKING:
    from lvt_diagnostic.client.session import ClientSession


@dataclass(frozen=True, slots=True)
class TrafficDecorator:
    """Request hook stamping the client identity and timeout."""

    user_agent: str = DEFAULT_USER_AGENT
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __call__(self, request: httpx.Request) -> None:
        request.headers["User-Agent"] = self.user_agent
        request.extensions["timeout"] = httpx.Timeout(self.timeout_ms / 1000).as_dict()


def set_traffic_decorator(
    session: ClientSession | None,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> None:
    """Install the traffic decorator on ``session``; ``None`` is ignored."""
    if session is None:
        return
    session.add_request_hook(TrafficDecorator(user_agent=user_agent, timeout_ms=timeout_ms))
