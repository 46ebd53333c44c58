"""Throttling-safe execution of a session's pending queries.

The executor dispatches the pending batch of a session and, when the
service answers HTTP 429 or 503, waits and resends the exact operation that
was throttled. The wait comes from the ``Retry-After`` header when it holds
a whole number of seconds (capped at ``max_retry_after_seconds``), otherwise
from an exponential backoff interval that doubles after every throttling
event. Every other failure propagates to the caller untouched.

The executor does not log; callers observe throttling through the optional
``on_throttle`` callback, which receives one message per event.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from typing import Protocol

from lvt_diagnostic.client.models import PendingOperation
from lvt_diagnostic.exceptions import (
    InvalidArgumentError,
    RetryBudgetExhaustedError,
    TransportError,
)
from lvt_diagnostic.retry.models import (
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_TOO_MANY_REQUESTS,
    ExecutionPhase,
    RetryPolicy,
    RetryState,
    ThrottleKind,
    ThrottlingSignal,
)

_RETRY_AFTER_RE = re.compile(r"\d+", re.ASCII)

ThrottleCallback = Callable[[str], None]
SleepFn = Callable[[float], None]


class DispatchingSession(Protocol):
    """What the executor needs from a request context."""

    def dispatch(self) -> PendingOperation | None: ...

    def retry(self, operation: PendingOperation) -> PendingOperation: ...


def parse_retry_after(value: str | None) -> int | None:
    """Parse a ``Retry-After`` header holding a plain count of seconds.

    Returns ``None`` for a missing header and for anything that is not a
    non-negative integer (HTTP dates included).
    """
    if value is None:
        return None
    stripped = value.strip()
    if not _RETRY_AFTER_RE.fullmatch(stripped):
        return None
    return int(stripped)


def classify_failure(exc: TransportError) -> ThrottlingSignal:
    """Classify a transport failure as rate limiting, overload, or other."""
    if exc.status_code == HTTP_TOO_MANY_REQUESTS:
        kind = ThrottleKind.RATE_LIMITED
    elif exc.status_code == HTTP_SERVICE_UNAVAILABLE:
        kind = ThrottleKind.SERVICE_UNAVAILABLE
    else:
        return ThrottlingSignal(kind=ThrottleKind.OTHER, status_code=exc.status_code)

    header = exc.headers.get("Retry-After")
    return ThrottlingSignal(
        kind=kind,
        status_code=exc.status_code,
        retry_after_seconds=parse_retry_after(header),
        retry_after_header=header or None,
    )


def _throttle_message(
    signal: ThrottlingSignal, attempt: int, backoff_seconds: float, wait: float
) -> str:
    message = f"Throttling occurred (HTTP {signal.status_code})! Retry attempt: {attempt}."
    if signal.retry_after_header is None:
        return (
            f"{message} This response did not issue a Retry-After header, "
            f"setting retry interval to {backoff_seconds:g} seconds."
        )
    message = f"{message} Retry-After header: {signal.retry_after_header}."
    if signal.retry_after_seconds is None:
        message = (
            f"{message} Header is not a number of seconds, "
            f"setting retry interval to {backoff_seconds:g} seconds."
        )
    elif wait < signal.retry_after_seconds:
        message = f"{message} Waiting at most {wait:g} seconds."
    return message


class ResilientExecutor:
    """Run a session's pending queries, absorbing throttling responses."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: SleepFn = time.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def _validate(self) -> None:
        if self.policy.max_attempts <= 0:
            raise InvalidArgumentError("Provide a retry count greater than zero.")
        if self.policy.base_delay_seconds <= 0:
            raise InvalidArgumentError("Provide a delay greater than zero.")
        budget = self.policy.max_total_wait_seconds
        if budget is not None and budget <= 0:
            raise InvalidArgumentError("Provide a total wait budget greater than zero.")
        if self.policy.max_retry_after_seconds <= 0:
            raise InvalidArgumentError("Provide a Retry-After ceiling greater than zero.")

    def execute(
        self,
        session: DispatchingSession,
        on_throttle: ThrottleCallback | None = None,
    ) -> RetryState:
        """Dispatch the session's pending batch with throttling retries.

        Args:
            session: Request context holding the queued queries.
            on_throttle: Optional callback receiving one message per
                throttling event.

        Returns:
            The final retry state (phase ``SUCCESS``).

        Raises:
            InvalidArgumentError: The policy has a non-positive budget.
            RetryBudgetExhaustedError: Every allowed attempt was throttled.
            TransportError: A non-throttling transport failure, unchanged.
        """
        self._validate()
        policy = self.policy
        state = RetryState(backoff_seconds=float(policy.base_delay_seconds))
        last_error: TransportError | None = None

        while state.attempts < policy.max_attempts:
            state.phase = ExecutionPhase.DISPATCHING
            try:
                if state.retrying and state.failed_operation is not None:
                    session.retry(state.failed_operation)
                else:
                    session.dispatch()
            except TransportError as exc:
                signal = classify_failure(exc)
                if not signal.retryable:
                    state.phase = ExecutionPhase.FAILED
                    raise

                if exc.failed_operation is not None:
                    state.failed_operation = exc.failed_operation
                if state.failed_operation is None:
                    state.phase = ExecutionPhase.FAILED
                    raise
                state.retrying = True
                state.phase = ExecutionPhase.AWAITING_BACKOFF

                if signal.retry_after_seconds is not None:
                    wait = min(
                        float(signal.retry_after_seconds), policy.max_retry_after_seconds
                    )
                else:
                    wait = state.backoff_seconds

                message = _throttle_message(
                    signal, state.attempts + 1, state.backoff_seconds, wait
                )
                budget = policy.max_total_wait_seconds
                over_budget = (
                    budget is not None and state.total_wait_seconds + wait > budget
                )
                if over_budget:
                    message = (
                        f"{message} Retry wait budget of {budget:g} seconds "
                        "exhausted, giving up."
                    )
                if on_throttle is not None:
                    on_throttle(message)

                if over_budget:
                    state.phase = ExecutionPhase.EXHAUSTED
                    raise RetryBudgetExhaustedError(
                        policy.max_attempts,
                        f"Retry wait budget of {budget:g} seconds would be exceeded "
                        f"after {state.attempts + 1} throttled attempt(s).",
                    ) from exc

                self._sleep(wait)
                state.waits.append(wait)
                state.attempts += 1
                state.backoff_seconds *= 2
                last_error = exc
            else:
                state.phase = ExecutionPhase.SUCCESS
                return state

        state.phase = ExecutionPhase.EXHAUSTED
        raise RetryBudgetExhaustedError(policy.max_attempts) from last_error


def execute_with_retry(
    session: DispatchingSession,
    max_attempts: int = 5,
    base_delay_seconds: float = 10,
    on_throttle: ThrottleCallback | None = None,
    *,
    sleep: SleepFn = time.sleep,
    max_total_wait_seconds: float | None = None,
    max_retry_after_seconds: float = 86_400,
) -> RetryState:
    """Dispatch ``session``'s pending queries, retrying on HTTP 429/503.

    See :meth:`ResilientExecutor.execute` for the failure modes.
    """
    policy = RetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=base_delay_seconds,
        max_total_wait_seconds=max_total_wait_seconds,
        max_retry_after_seconds=max_retry_after_seconds,
    )
    return ResilientExecutor(policy, sleep=sleep).execute(session, on_throttle)
