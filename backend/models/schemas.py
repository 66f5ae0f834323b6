"""Pydantic schemas for error records, the error cache and operation results.

This module defines all the data models exchanged with calling collaborators
and persisted in the sandbox. Field names are snake_case in Python; every
model serialises to the camelCase wire shape with ``model_dump(by_alias=True)``.
"""

import time
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def timestamp_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def epoch_millis(seconds: float | None = None) -> int:
    """Convert a Unix timestamp (default: now) to integer milliseconds."""
    return int((time.time() if seconds is None else seconds) * 1000)


class FrameworkId(StrEnum):
    """Frameworks the orchestrator knows how to drive."""

    NEXTJS = "nextjs"
    VITE = "vite"
    CRA = "cra"


class ErrorKind(StrEnum):
    """Categories a log line or reported error can fall into."""

    NPM_MISSING = "npm-missing"
    SYNTAX_ERROR = "syntax-error"
    TYPE_ERROR = "type-error"
    BUILD_ERROR = "build-error"
    RUNTIME_ERROR = "runtime-error"
    WARNING = "warning"
    SUCCESS = "success"


class OperationName(StrEnum):
    """Operations accepted by ``SessionController.run_operation``."""

    INSTALL = "install"
    DEV = "dev"
    START = "start"
    BUILD = "build"
    TEST = "test"
    LINT = "lint"
    TYPECHECK = "typecheck"
    CLEAN = "clean"
    KILL = "kill"
    STOP = "stop"
    STATUS = "status"
    HEALTH = "health"
    LOGS = "logs"


# Operations that only observe the sandbox and are never throttled by cooldown.
READ_ONLY_OPERATIONS: frozenset[str] = frozenset(
    {OperationName.STATUS, OperationName.HEALTH, OperationName.LOGS}
)


class RestartStatus(StrEnum):
    """Outcome of a restart request."""

    RESTARTED = "restarted"
    ALREADY_IN_PROGRESS = "already-in-progress"
    COOLDOWN = "cooldown"


class CamelModel(BaseModel):
    """Base model with camelCase aliases that still accepts field names."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ---------------------------------------------------------------------------
# Error records and the persisted cache
# ---------------------------------------------------------------------------


class ErrorRecord(CamelModel):
    """A single classified or reported error, warning or info line."""

    type: ErrorKind
    message: str
    package: str | None = None
    file: str | None = None
    line: int | None = None
    column: int | None = None
    stack: str | None = None
    framework: str
    timestamp: str = Field(default_factory=timestamp_now)
    reported: bool = False

    @property
    def dedup_key(self) -> str:
        """Key used to merge duplicate classified errors."""
        return f"{self.type}-{self.package or self.message}"

    @property
    def report_key(self) -> tuple[str, str | None, int | None]:
        """Key used to merge duplicate externally reported errors."""
        return (self.message, self.file, self.line)


class ErrorCache(CamelModel):
    """Per-framework error cache document stored at ``/tmp/<id>-errors.json``."""

    errors: list[ErrorRecord] = Field(default_factory=list)
    warnings: list[ErrorRecord] = Field(default_factory=list)
    last_checked: int = Field(default_factory=epoch_millis)
    framework: str
    cleared: bool = False

    def to_json(self) -> str:
        """Serialise to the compact wire form written into the sandbox."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ReportErrorRequest(CamelModel):
    """Payload for an externally reported error (e.g. from the browser)."""

    message: str = Field(
        min_length=1,
        validation_alias=AliasChoices("error", "message"),
        description="The error message",
    )
    type: ErrorKind = ErrorKind.RUNTIME_ERROR
    file: str | None = None
    line: int | None = None
    column: int | None = None
    stack: str | None = None


class OperationArgs(CamelModel):
    """Extra arguments for ``run_operation``."""

    dev: bool = Field(default=False, description="Install packages as dev dependencies")
    lines: int = Field(default=50, ge=1, le=5000, description="Lines to tail for logs")
    extra: list[str] = Field(
        default_factory=list,
        description="Arguments appended to build/lint/typecheck/test commands",
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class RestartResult(CamelModel):
    """Result of ``restart_session``."""

    success: bool
    status: RestartStatus | None = None
    message: str = ""
    framework: str | None = None
    framework_name: str | None = None
    command: str | None = None
    port: int | None = None
    cooldown_remaining: int | None = None
    error: str | None = None


class KillCommandResult(CamelModel):
    """Outcome of one kill command."""

    command: str
    exit_code: int | None = None
    error: str | None = None


class LogExcerpt(CamelModel):
    """Tail of one log file."""

    command: str
    content: str


class OperationResult(CamelModel):
    """Result of ``run_operation``; operation-specific fields stay ``None``."""

    success: bool
    operation: str
    framework: str | None = None
    framework_name: str | None = None
    package_manager: str | None = None
    confidence: float | None = None
    message: str | None = None
    in_progress: bool | None = None
    cooldown: int | None = None
    command: str | None = None
    exit_code: int | None = None
    output: str | None = None
    error: str | None = None
    healthy: bool | None = None
    port: int | None = None
    url: str | None = None
    log_file: str | None = None
    process_running: bool | None = None
    kill_commands: list[KillCommandResult] | None = None
    logs: list[LogExcerpt] | None = None
    timestamp: str = Field(default_factory=timestamp_now)


class MonitorSummary(CamelModel):
    """Counts reported alongside a monitor pass."""

    error_count: int
    warning_count: int
    last_checked: str


class MonitorReport(CamelModel):
    """Result of ``monitor_logs``."""

    success: bool = True
    framework: str
    framework_name: str
    has_errors: bool
    has_warnings: bool
    errors: list[ErrorRecord]
    warnings: list[ErrorRecord]
    info: list[ErrorRecord]
    log_files: list[str]
    summary: MonitorSummary


class CheckErrorsResult(CamelModel):
    """Result of ``check_errors``."""

    success: bool = True
    framework: str
    confidence: float
    has_errors: bool
    errors: list[ErrorRecord]
    message: str


class ReportErrorResult(CamelModel):
    """Result of ``report_error``."""

    success: bool = True
    message: str
    framework: str
    framework_name: str
    error_id: str
    is_duplicate: bool
    total_errors: int
    timestamp: str = Field(default_factory=timestamp_now)


class ClearCacheResult(CamelModel):
    """Result of ``clear_error_cache``."""

    success: bool = True
    message: str
    framework: str
    framework_name: str
    cleared_files: list[str]
    errors: list[str] | None = None
    timestamp: str = Field(default_factory=timestamp_now)


class FrameworkConfigSummary(CamelModel):
    """The subset of a framework profile exposed to callers."""

    dev_port: int
    dev_command: str
    build_command: str
    log_files: list[str]


class OperationsSnapshot(CamelModel):
    """Snapshot of the per-operation state table."""

    in_progress: dict[str, bool]
    last_executed: dict[str, int]


class FrameworkInfo(CamelModel):
    """Read-only view of the detected framework and operation state."""

    success: bool = True
    framework: str
    framework_name: str
    confidence: float
    evidence: list[str]
    package_manager: str
    config: FrameworkConfigSummary
    operations: OperationsSnapshot
    timestamp: str = Field(default_factory=timestamp_now)
