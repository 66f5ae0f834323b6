"""Application configuration using Pydantic Settings.

This module provides centralized configuration management for the dev-session
orchestrator. All settings can be overridden via environment variables or a
.env file.
"""

import logging
import sys
from typing import Any

import structlog
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        score_primary_dependency: Score added per primary framework dependency.
        score_secondary_dependency: Score added per secondary (dev) dependency.
        score_dev_script: Score added when the manifest declares a dev script.
        score_build_script: Score added when the manifest declares a build script.
        score_config_file: Score added per framework config file found on disk.
        score_running_process: Score added when a framework process is running.
        default_framework: Framework reported when detection finds nothing.
        restart_cooldown_seconds: Minimum interval between dev-server restarts.
        operation_cooldown_seconds: Minimum interval between runs of one operation.
        kill_settle_seconds: Wait after kill commands before relaunching.
        dev_warmup_seconds: Wait after launching the dev server.
        monitor_tail_lines: Lines read from each log file when monitoring.
        check_tail_lines: Lines read from each log file for explicit checks.
        max_cached_errors: Cap on errors kept in a persisted error cache.
        max_monitor_errors: Errors returned (and cached) by a monitor pass.
        max_monitor_warnings: Warnings returned (and cached) by a monitor pass.
        max_monitor_info: Info lines returned by a monitor pass.
        error_cache_dir: Directory inside the sandbox holding error caches.
        command_timeout_seconds: Timeout for one sandbox command.
        sandbox_workdir: Working directory for sandbox commands.
        sandbox_user: User that sandbox commands run as.
        sandbox_allow_unrestricted_commands: If False, enforce the strict
            command allowlist in sandbox.security.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_format: Log format (json or text).
    """

    # Detection weights
    score_primary_dependency: int = 30
    score_secondary_dependency: int = 20
    score_dev_script: int = 15
    score_build_script: int = 10
    score_config_file: int = 25
    score_running_process: int = 15
    default_framework: str = "vite"

    # Session timings
    restart_cooldown_seconds: float = 5.0
    operation_cooldown_seconds: float = 3.0
    kill_settle_seconds: float = 2.0
    dev_warmup_seconds: float = 3.0

    # Log monitoring
    monitor_tail_lines: int = 100
    check_tail_lines: int = 50
    max_cached_errors: int = 20
    max_monitor_errors: int = 10
    max_monitor_warnings: int = 5
    max_monitor_info: int = 3
    error_cache_dir: str = "/tmp"

    # Sandbox Configuration
    command_timeout_seconds: int = 120
    sandbox_workdir: str = "/workspace"
    sandbox_user: str = "node"
    sandbox_allow_unrestricted_commands: bool = True

    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("error_cache_dir", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str:
        """Normalise the cache directory so paths join as ``<dir>/<file>``."""
        if isinstance(v, str) and len(v) > 1:
            return v.rstrip("/")
        return v

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


def build_processors(log_format: str = "json") -> list[structlog.types.Processor]:
    """Return the structlog processor chain ending in the renderer for ``log_format``."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging for the application.

    Sets up structlog with appropriate processors for either JSON or console output.

    Args:
        log_level: The minimum log level to emit (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format - 'json' for production, 'text' for development.
    """
    structlog.configure(
        processors=build_processors(log_format),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# Global settings instance
settings = Settings()

# Configure logging on module import
configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger(__name__)
