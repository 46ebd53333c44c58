"""Unit tests for the resilient executor state machine."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from lvt_diagnostic.client.models import PendingOperation
from lvt_diagnostic.exceptions import (
    InvalidArgumentError,
    RetryBudgetExhaustedError,
    ServerError,
    TransportError,
)
from lvt_diagnostic.retry import (
    ExecutionPhase,
    ResilientExecutor,
    RetryPolicy,
    execute_with_retry,
)

# Outcome scripts: ``None`` succeeds, an int fails with that HTTP status,
# ``(status, retry_after)`` adds a Retry-After header, an exception is raised.
Outcome = None | int | tuple[int, str] | Exception


class ScriptedSession:
    """Session double that plays back a list of dispatch outcomes."""

    def __init__(self, outcomes: list[Outcome]) -> None:
        self._outcomes = list(outcomes)
        self.operation = PendingOperation(sequence=7, queries=())
        self.dispatch_calls = 0
        self.retried: list[PendingOperation] = []
        self.raised: list[Exception] = []

    @property
    def attempts(self) -> int:
        return self.dispatch_calls + len(self.retried)

    def dispatch(self) -> PendingOperation | None:
        self.dispatch_calls += 1
        return self._play(self.operation)

    def retry(self, operation: PendingOperation) -> PendingOperation:
        self.retried.append(operation)
        return self._play(operation)

    def _play(self, operation: PendingOperation) -> PendingOperation:
        outcome = self._outcomes.pop(0)
        if outcome is None:
            return operation
        if isinstance(outcome, Exception):
            error: Exception = outcome
        else:
            status, retry_after = outcome if isinstance(outcome, tuple) else (outcome, None)
            headers = {"Retry-After": retry_after} if retry_after is not None else {}
            error = TransportError(
                f"HTTP {status}",
                status_code=status,
                headers=headers,
                failed_operation=operation,
            )
        self.raised.append(error)
        raise error


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------


class TestArgumentValidation:
    """Non-positive budgets fail before any dispatch."""

    @pytest.mark.parametrize(
        ("max_attempts", "base_delay"),
        [(0, 10), (-1, 10), (5, 0), (5, -2), (0, 0)],
    )
    def test_rejects_non_positive_values(
        self, max_attempts: int, base_delay: float, fake_sleep: Callable[[float], None]
    ) -> None:
        session = ScriptedSession([None])
        with pytest.raises(InvalidArgumentError):
            execute_with_retry(session, max_attempts, base_delay, sleep=fake_sleep)
        assert session.attempts == 0

    def test_invalid_argument_is_value_error(self) -> None:
        assert issubclass(InvalidArgumentError, ValueError)

    def test_rejects_non_positive_wait_budget(self) -> None:
        session = ScriptedSession([None])
        with pytest.raises(InvalidArgumentError):
            execute_with_retry(session, max_total_wait_seconds=0)
        assert session.attempts == 0


# ---------------------------------------------------------------------------
# Backoff behavior
# ---------------------------------------------------------------------------


class TestBackoff:
    """Wait intervals follow Retry-After or the doubling backoff."""

    def test_success_on_first_dispatch(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([None])
        state = execute_with_retry(session, sleep=fake_sleep)
        assert state.phase == ExecutionPhase.SUCCESS
        assert state.attempts == 0
        assert sleeps == []
        assert session.dispatch_calls == 1

    def test_doubles_without_retry_after(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([429, 429, 429, None])
        state = execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert sleeps == [10, 20, 40]
        assert state.attempts == 3
        assert state.phase == ExecutionPhase.SUCCESS
        assert state.backoff_seconds == 80

    def test_retry_after_used_for_this_wait_only(
        self, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([(429, "7"), None])
        state = execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert sleeps == [7]
        assert state.backoff_seconds == 20

    def test_backoff_keeps_growing_after_retry_after(
        self, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([(429, "7"), (503, "3"), 429, None])
        execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert sleeps == [7, 3, 40]

    @pytest.mark.parametrize("header", ["Wed, 21 Oct 2026 07:28:00 GMT", "-5", "1.5", ""])
    def test_unparseable_retry_after_falls_back(
        self, header: str, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([(429, header), None])
        execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert sleeps == [10]

    def test_service_unavailable_is_retried(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([503, None])
        state = execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert state.phase == ExecutionPhase.SUCCESS
        assert sleeps == [10]


# ---------------------------------------------------------------------------
# Exhaustion
# ---------------------------------------------------------------------------


class TestExhaustion:
    """The attempt budget is a hard cap."""

    def test_exhausts_after_max_attempts(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([429] * 6)
        with pytest.raises(RetryBudgetExhaustedError) as excinfo:
            execute_with_retry(session, 5, 10, sleep=fake_sleep)
        assert excinfo.value.max_attempts == 5
        assert session.attempts == 5
        assert sleeps == [10, 20, 40, 80, 160]
        assert excinfo.value.__cause__ is session.raised[-1]

    def test_exhaustion_message_names_budget(self, fake_sleep) -> None:
        session = ScriptedSession([429, 429])
        with pytest.raises(RetryBudgetExhaustedError, match=r"\(2\)"):
            execute_with_retry(session, 2, 1, sleep=fake_sleep)

    def test_wait_budget_stops_before_sleeping(
        self, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([429, 429, None])
        with pytest.raises(RetryBudgetExhaustedError, match="wait budget"):
            execute_with_retry(
                session, 5, 10, sleep=fake_sleep, max_total_wait_seconds=15
            )
        assert sleeps == [10]
        assert session.attempts == 2

    def test_wait_budget_reports_final_throttle(self, fake_sleep) -> None:
        messages: list[str] = []
        session = ScriptedSession([429, 503, None])
        with pytest.raises(RetryBudgetExhaustedError):
            execute_with_retry(
                session,
                5,
                10,
                messages.append,
                sleep=fake_sleep,
                max_total_wait_seconds=15,
            )
        assert len(messages) == 2
        assert "HTTP 503" in messages[1]
        assert "Retry attempt: 2." in messages[1]
        assert messages[1].endswith("budget of 15 seconds exhausted, giving up.")
        assert "exhausted" not in messages[0]


class TestRetryAfterCeiling:
    """Server-suggested waits are capped by the policy ceiling."""

    def test_huge_retry_after_is_clamped(self, sleeps: list[float], fake_sleep) -> None:
        messages: list[str] = []
        session = ScriptedSession([(429, "99999999999"), None])
        state = execute_with_retry(session, on_throttle=messages.append, sleep=fake_sleep)
        assert sleeps == [86_400]
        assert state.phase == ExecutionPhase.SUCCESS
        assert messages[0].endswith("Retry-After header: 99999999999. Waiting at most 86400 seconds.")

    def test_custom_ceiling(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([(503, "120"), (503, "30"), None])
        execute_with_retry(session, sleep=fake_sleep, max_retry_after_seconds=60)
        assert sleeps == [60, 30]

    def test_clamped_wait_counts_against_budget(self, sleeps: list[float], fake_sleep) -> None:
        session = ScriptedSession([(429, "500"), (429, "500"), None])
        with pytest.raises(RetryBudgetExhaustedError):
            execute_with_retry(
                session,
                sleep=fake_sleep,
                max_retry_after_seconds=100,
                max_total_wait_seconds=150,
            )
        assert sleeps == [100]

    def test_rejects_non_positive_ceiling(self) -> None:
        session = ScriptedSession([None])
        with pytest.raises(InvalidArgumentError):
            execute_with_retry(session, max_retry_after_seconds=0)
        assert session.attempts == 0


# ---------------------------------------------------------------------------
# Non-retryable failures
# ---------------------------------------------------------------------------


class TestNonRetryable:
    """Everything except 429/503 propagates unchanged."""

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 500, 502, 504])
    def test_other_status_propagates(
        self, status: int, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([status, None])
        with pytest.raises(TransportError) as excinfo:
            execute_with_retry(session, sleep=fake_sleep)
        assert excinfo.value is session.raised[0]
        assert session.retried == []
        assert sleeps == []

    def test_missing_status_propagates(self, sleeps: list[float], fake_sleep) -> None:
        error = TransportError("connection reset", status_code=None)
        session = ScriptedSession([error])
        with pytest.raises(TransportError) as excinfo:
            execute_with_retry(session, sleep=fake_sleep)
        assert excinfo.value is error
        assert sleeps == []

    def test_server_error_propagates(self, fake_sleep) -> None:
        error = ServerError("exceeds the list view threshold")
        session = ScriptedSession([error])
        with pytest.raises(ServerError):
            execute_with_retry(session, sleep=fake_sleep)
        assert session.attempts == 1

    def test_throttle_after_retry_then_bad_request(
        self, sleeps: list[float], fake_sleep
    ) -> None:
        session = ScriptedSession([429, 400])
        with pytest.raises(TransportError) as excinfo:
            execute_with_retry(session, sleep=fake_sleep)
        assert excinfo.value.status_code == 400
        assert sleeps == [10]

    def test_throttle_without_operation_propagates(self, fake_sleep) -> None:
        error = TransportError("throttled", status_code=429)
        session = ScriptedSession([error])
        with pytest.raises(TransportError) as excinfo:
            execute_with_retry(session, sleep=fake_sleep)
        assert excinfo.value is error


# ---------------------------------------------------------------------------
# Request identity
# ---------------------------------------------------------------------------


class TestRequestIdentity:
    """Retries resend the captured operation, never a fresh batch."""

    def test_retries_target_failed_operation(self, fake_sleep) -> None:
        session = ScriptedSession([429, 503, None])
        state = execute_with_retry(session, sleep=fake_sleep)
        assert session.dispatch_calls == 1
        assert len(session.retried) == 2
        assert all(op is session.operation for op in session.retried)
        assert state.failed_operation is session.operation

    def test_equal_content_is_not_enough(self, fake_sleep) -> None:
        session = ScriptedSession([429, None])
        twin = PendingOperation(sequence=7, queries=())
        execute_with_retry(session, sleep=fake_sleep)
        assert session.retried[0] is not twin
        assert session.retried[0] != twin


# ---------------------------------------------------------------------------
# Throttle callback
# ---------------------------------------------------------------------------


class TestThrottleCallback:
    """One human-readable message per throttling event."""

    def test_message_without_retry_after(self, fake_sleep) -> None:
        messages: list[str] = []
        execute_with_retry(
            ScriptedSession([429, 429, None]), 5, 10, messages.append, sleep=fake_sleep
        )
        assert len(messages) == 2
        assert "HTTP 429" in messages[0]
        assert "Retry attempt: 1." in messages[0]
        assert "did not issue a Retry-After header" in messages[0]
        assert "10 seconds" in messages[0]
        assert "Retry attempt: 2." in messages[1]
        assert "20 seconds" in messages[1]

    def test_message_with_retry_after(self, fake_sleep) -> None:
        messages: list[str] = []
        execute_with_retry(
            ScriptedSession([(503, "7"), None]), on_throttle=messages.append, sleep=fake_sleep
        )
        assert messages == ["Throttling occurred (HTTP 503)! Retry attempt: 1. Retry-After header: 7."]

    def test_message_with_bad_retry_after(self, fake_sleep) -> None:
        messages: list[str] = []
        execute_with_retry(
            ScriptedSession([(429, "soon"), None]),
            on_throttle=messages.append,
            sleep=fake_sleep,
        )
        assert "Retry-After header: soon." in messages[0]
        assert "setting retry interval to 10 seconds" in messages[0]

    def test_no_callback_for_success(self, fake_sleep) -> None:
        messages: list[str] = []
        execute_with_retry(ScriptedSession([None]), on_throttle=messages.append, sleep=fake_sleep)
        assert messages == []


# ---------------------------------------------------------------------------
# ResilientExecutor
# ---------------------------------------------------------------------------


class TestResilientExecutor:
    """Policy object wiring."""

    def test_default_policy(self) -> None:
        executor = ResilientExecutor()
        assert executor.policy.max_attempts == 5
        assert executor.policy.base_delay_seconds == 10
        assert executor.policy.max_total_wait_seconds is None

    def test_executor_is_reusable(self, sleeps: list[float], fake_sleep) -> None:
        executor = ResilientExecutor(
            RetryPolicy(max_attempts=3, base_delay_seconds=2), sleep=fake_sleep
        )
        executor.execute(ScriptedSession([429, None]))
        executor.execute(ScriptedSession([429, None]))
        assert sleeps == [2, 2]
