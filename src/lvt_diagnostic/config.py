"""Configuration with 4-layer resolution: defaults -> YAML -> env -> CLI.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``LVT_DIAGNOSTIC_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields, e.g.
``LVT_DIAGNOSTIC_SITE__LIST_TITLE=Documents``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "ISV|Contoso|LVT-Diagnostic/1.0.0.0"
DEFAULT_TIMEOUT_MS = 300_000


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class SiteSettings(BaseModel):
    """Remote site, credentials and the collection under test."""

    url: str = "https://contoso.sharepoint.com/sites/lvt"
    username: str = ""
    password: SecretStr = SecretStr("")
    list_title: str = Field(default="Documents", min_length=1)
    list_item_id: int = Field(default=1, ge=1)


class TransportSettings(BaseModel):
    """Values stamped on every outbound transmission."""

    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS, gt=0, description="Per-request timeout in ms."
    )


class RetrySettings(BaseModel):
    """Throttling retry budget."""

    max_attempts: int = Field(default=5, gt=0)
    base_delay_seconds: int = Field(
        default=10, gt=0, description="First backoff wait; doubles per retry."
    )
    max_total_wait_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description="Optional cap on the summed backoff waits of one call.",
    )
    max_retry_after_seconds: float = Field(
        default=86_400,
        gt=0.0,
        description="Longest single wait honoured from a Retry-After header.",
    )


class ScanSettings(BaseModel):
    """Paged collection scan configuration."""

    row_limit: int = Field(default=1000, gt=0)
    threshold: int = Field(
        default=5000, gt=0, description="Item count at which the server rejects."
    )


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``config.yaml`` or ``--config`` path)
        3. Environment variables (prefixed ``LVT_DIAGNOSTIC_``)
        4. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="LVT_DIAGNOSTIC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    site: SiteSettings = Field(default_factory=SiteSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > yaml > defaults
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "config.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and CLI overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            settings = cls(**overrides)
        finally:
            cls._config_path_override = None
        logger.debug(
            "settings_loaded",
            site=settings.site.url,
            list_title=settings.site.list_title,
            config_path=str(config_path) if config_path else None,
        )
        return settings


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
