"""Resilient executor exports."""

from lvt_diagnostic.retry.executor import (
    ResilientExecutor,
    classify_failure,
    execute_with_retry,
    parse_retry_after,
)
from lvt_diagnostic.retry.models import (
    ExecutionPhase,
    RetryPolicy,
    RetryState,
    ThrottleKind,
    ThrottlingSignal,
)

__all__ = [
    "ExecutionPhase",
    "ResilientExecutor",
    "RetryPolicy",
    "RetryState",
    "ThrottleKind",
    "ThrottlingSignal",
    "classify_failure",
    "execute_with_retry",
    "parse_retry_after",
]
