"""structlog configuration and scenario-scoped logging.

Provides run ID generation, a scenario logging context manager, the
throttling callback adapter, and structured log configuration for console
and JSON output with optional file logging.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Run ID
# ---------------------------------------------------------------------------


def generate_run_id() -> str:
    """Generate a unique identifier for one diagnostic run.

    Returns:
        A UUID4 string.
    """
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# httpx logs every request at INFO; the session already logs each transmission.
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    run_id: str | None = None,
) -> None:
    """Route structlog and stdlib records through one renderer.

    Output goes to stderr and, when ``log_file`` is given, to that file as
    well. The HTTP client's own request lines are only shown at ``DEBUG``.
    Records from stdlib loggers get the same context (run id, scenario) as
    structlog events.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: ``"console"`` for human-readable or ``"json"`` for one JSON
            object per line.
        log_file: Optional file path for log output.
        run_id: Optional run ID to bind to all log entries.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)
    numeric_level = getattr(logging, level_upper)

    context_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderers: list[structlog.types.Processor]
    if fmt == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=context_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderers,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *context_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if run_id:
        structlog.contextvars.bind_contextvars(run_id=run_id)


# ---------------------------------------------------------------------------
# Scenario logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def scenario_logging_context(
    scenario: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Context manager that binds scenario metadata to structlog.

    Logs scenario start and end, and binds the scenario name to all log
    entries emitted within the context, including those of collaborators
    that log through their own module loggers.

    Args:
        scenario: Name of the scenario being run.
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with scenario context.

    Example::

        with scenario_logging_context("enumerate-items", list_title="Docs") as log:
            log.info("page_scanned", items=1000)
    """
    structlog.contextvars.bind_contextvars(scenario=scenario, **extra)

    log: structlog.stdlib.BoundLogger = structlog.get_logger(scenario)
    log.info("scenario_start", scenario=scenario)

    try:
        yield log
    except Exception:
        log.exception("scenario_error", scenario=scenario)
        raise
    finally:
        log.info("scenario_end", scenario=scenario)
        structlog.contextvars.unbind_contextvars("scenario", *extra.keys())


# ---------------------------------------------------------------------------
# Throttling callback
# ---------------------------------------------------------------------------


def throttle_logger(log: structlog.stdlib.BoundLogger) -> Callable[[str], None]:
    """Adapt a bound logger into a single-argument throttling callback.

    Args:
        log: Logger that receives one ``warning`` line per throttling event.

    Returns:
        A callable suitable for ``execute_with_retry(on_throttle=...)``.
    """

    def _on_throttle(message: str) -> None:
        log.warning("request_throttled", detail=message)

    return _on_throttle
