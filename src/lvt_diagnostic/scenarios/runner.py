"""Run scenarios one after another, each in its own scoped session."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field

from lvt_diagnostic.client.session import ClientSession, open_session
from lvt_diagnostic.exceptions import InvalidArgumentError, ServerError
from lvt_diagnostic.logging import scenario_logging_context
from lvt_diagnostic.retry.executor import ResilientExecutor, SleepFn
from lvt_diagnostic.retry.models import RetryPolicy
from lvt_diagnostic.scenarios.examples import SCENARIOS, ScenarioContext, default_scenarios

if TYPE_CHECKING:
    from lvt_diagnostic.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

SessionFactory = Callable[["Settings"], AbstractContextManager[ClientSession]]


class ScenarioOutcome(BaseModel):
    """Result of one scenario run."""

    name: str
    succeeded: bool
    elapsed_seconds: float = Field(ge=0.0)
    error_type: str | None = None
    message: str = ""
    list_view_threshold: bool = False
    result: dict[str, Any] | None = None


class RunSummary(BaseModel):
    """All scenario outcomes of one run."""

    outcomes: list[ScenarioOutcome] = Field(default_factory=list)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)


class ScenarioRunner:
    """Run named scenarios and report success or failure for each."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory = open_session,
        sleep: SleepFn = time.sleep,
    ) -> None:
        self.settings = settings
        self._session_factory = session_factory
        retry = settings.retry
        self._executor = ResilientExecutor(
            RetryPolicy(
                max_attempts=retry.max_attempts,
                base_delay_seconds=retry.base_delay_seconds,
                max_total_wait_seconds=retry.max_total_wait_seconds,
                max_retry_after_seconds=retry.max_retry_after_seconds,
            ),
            sleep=sleep,
        )

    def run(self, names: Iterable[str] | None = None) -> RunSummary:
        """Run ``names`` (default scenarios when omitted) in order.

        Raises:
            InvalidArgumentError: If a name is not a known scenario.
        """
        selected = list(names) if names else default_scenarios()
        unknown = [name for name in selected if name not in SCENARIOS]
        if unknown:
            raise InvalidArgumentError(
                f"Unknown scenario(s): {', '.join(unknown)}. "
                f"Available: {', '.join(SCENARIOS)}"
            )

        started = time.perf_counter()
        summary = RunSummary()
        for name in selected:
            summary.outcomes.append(self.run_one(name))
        summary.elapsed_seconds = time.perf_counter() - started

        logger.info(
            "run_finished",
            scenarios=len(summary.outcomes),
            failed=sum(not outcome.succeeded for outcome in summary.outcomes),
            elapsed_seconds=round(summary.elapsed_seconds, 3),
        )
        return summary

    def run_one(self, name: str) -> ScenarioOutcome:
        scenario = SCENARIOS[name]
        started = time.perf_counter()
        try:
            with (
                scenario_logging_context(
                    name, list_title=self.settings.site.list_title
                ) as log,
                self._session_factory(self.settings) as session,
            ):
                ctx = ScenarioContext(
                    session=session,
                    executor=self._executor,
                    settings=self.settings,
                    log=log,
                )
                result = scenario.run(ctx)
        except Exception as exc:
            outcome = ScenarioOutcome(
                name=name,
                succeeded=False,
                elapsed_seconds=time.perf_counter() - started,
                error_type=type(exc).__name__,
                message=str(exc),
                list_view_threshold=isinstance(exc, ServerError)
                and exc.is_list_view_threshold,
            )
            logger.error(
                "scenario_failed",
                scenario=name,
                error_type=outcome.error_type,
                error=outcome.message,
                list_view_threshold=outcome.list_view_threshold,
            )
            return outcome

        outcome = ScenarioOutcome(
            name=name,
            succeeded=True,
            elapsed_seconds=time.perf_counter() - started,
            result=result.model_dump(),
        )
        logger.info("scenario_succeeded", scenario=name)
        return outcome
