"""Centralized exception hierarchy for the lvt-diagnostic package.

All domain-specific exceptions inherit from ``LvtDiagnosticError`` so
callers can catch the entire family with a single ``except`` clause.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from lvt_diagnostic.client.models import PendingOperation

# Server error type reported when a query spans more items than the
# list view threshold allows.
LVT_ERROR_TYPE_NAME = "Microsoft.SharePoint.SPQueryThrottledException"
LVT_ERROR_CODE = -2147024860


class LvtDiagnosticError(Exception):
    """Base exception for all lvt-diagnostic errors."""


class InvalidArgumentError(LvtDiagnosticError, ValueError):
    """Raised when a caller supplies an out-of-range argument."""


class MissingHandleError(LvtDiagnosticError, ValueError):
    """Raised when a required handle is ``None``."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Value cannot be null. (Parameter '{name}')")


# ---------------------------------------------------------------------------
# Session errors
# ---------------------------------------------------------------------------


class SessionClosedError(LvtDiagnosticError):
    """Raised when a closed session is asked to queue or transmit."""


class HandleNotResolvedError(LvtDiagnosticError):
    """Raised when a query handle is read before its batch succeeded."""


class TransportError(LvtDiagnosticError):
    """A transmission of a pending operation failed.

    ``status_code`` is ``None`` when no HTTP response was received at all
    (connection reset, DNS failure, timeout). ``failed_operation`` is the
    exact pending operation that was on the wire, so a caller can resend
    that same object.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        failed_operation: PendingOperation | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self.failed_operation = failed_operation
        self.body = body


class ServerError(LvtDiagnosticError):
    """The service accepted the batch but reported a processing error."""

    def __init__(
        self,
        message: str,
        *,
        error_type_name: str = "",
        error_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type_name = error_type_name
        self.error_code = error_code

    @property
    def is_list_view_threshold(self) -> bool:
        return (
            self.error_type_name == LVT_ERROR_TYPE_NAME
            or self.error_code == LVT_ERROR_CODE
        )


# ---------------------------------------------------------------------------
# Retry errors
# ---------------------------------------------------------------------------


class RetryBudgetExhaustedError(LvtDiagnosticError):
    """Raised when every allowed attempt was throttled."""

    def __init__(self, max_attempts: int, message: str | None = None) -> None:
        self.max_attempts = max_attempts
        super().__init__(
            message
            or f"Maximum number of retries ({max_attempts}) have been attempted."
        )
