"""Models used by the resilient executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from lvt_diagnostic.client.models import PendingOperation

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVICE_UNAVAILABLE = 503


class ThrottleKind(StrEnum):
    """Classification of a failed transmission."""

    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    OTHER = "other"


class ExecutionPhase(StrEnum):
    """States of one ``execute_with_retry`` call."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING_BACKOFF = "awaiting_backoff"
    EXHAUSTED = "exhausted"
    SUCCESS = "success"
    FAILED = "failed"


class RetryPolicy(BaseModel):
    """Retry budget for throttled dispatches.

    Values are checked by the executor, not here, so that out-of-range
    budgets surface as ``InvalidArgumentError`` before any dispatch.
    """

    max_attempts: int = 5
    base_delay_seconds: float = 10
    max_total_wait_seconds: float | None = None
    max_retry_after_seconds: float = 86_400


class ThrottlingSignal(BaseModel):
    """What a failed transmission tells the executor."""

    kind: ThrottleKind
    status_code: int | None = None
    retry_after_seconds: int | None = None
    retry_after_header: str | None = None

    @property
    def retryable(self) -> bool:
        return self.kind is not ThrottleKind.OTHER


@dataclass(slots=True)
class RetryState:
    """Transient state of one ``execute_with_retry`` call."""

    backoff_seconds: float
    phase: ExecutionPhase = ExecutionPhase.IDLE
    attempts: int = 0
    retrying: bool = False
    failed_operation: PendingOperation | None = None
    waits: list[float] = field(default_factory=list)

    @property
    def total_wait_seconds(self) -> float:
        return sum(self.waits)
