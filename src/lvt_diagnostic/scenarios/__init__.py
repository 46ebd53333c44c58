"""Query scenario exports."""

from lvt_diagnostic.scenarios.examples import (
    SCENARIOS,
    Scenario,
    ScenarioContext,
    default_scenarios,
)
from lvt_diagnostic.scenarios.runner import RunSummary, ScenarioOutcome, ScenarioRunner
from lvt_diagnostic.scenarios.views import ViewQuery

__all__ = [
    "SCENARIOS",
    "RunSummary",
    "Scenario",
    "ScenarioContext",
    "ScenarioOutcome",
    "ScenarioRunner",
    "ViewQuery",
    "default_scenarios",
]
