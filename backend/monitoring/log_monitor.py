"""Log monitoring, error reporting and cache maintenance.

The LogMonitor tails a framework's dev-server log files inside the sandbox,
classifies each line, merges the result with the per-framework error cache
and writes the merged document back. It also accepts errors reported from
outside (e.g. a browser overlay) and clears the caches on request.

Usage:
    >>> capabilities = SandboxCapabilities(provider)
    >>> store = ErrorCacheStore(capabilities)
    >>> monitor = LogMonitor(capabilities, store)
    >>> report = await monitor.monitor("vite")
    >>> report.summary.error_count
    0
"""

from collections.abc import Callable, Hashable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from frameworks.registry import FrameworkProfile, get_framework, list_frameworks
from models.schemas import (
    CheckErrorsResult,
    ClearCacheResult,
    ErrorCache,
    ErrorKind,
    ErrorRecord,
    FrameworkId,
    MonitorReport,
    MonitorSummary,
    ReportErrorRequest,
    ReportErrorResult,
    epoch_millis,
    timestamp_now,
)
from monitoring.classifier import classify_line, is_error
from monitoring.error_cache import ErrorCacheStore
from sandbox.capabilities import SandboxCapabilities

if TYPE_CHECKING:
    from config import Settings

logger = structlog.get_logger(__name__)


def _dedupe(
    records: Iterable[ErrorRecord], key: Callable[[ErrorRecord], Hashable]
) -> list[ErrorRecord]:
    """Drop records whose key was already seen, keeping the first."""
    seen: set[Hashable] = set()
    unique: list[ErrorRecord] = []
    for record in records:
        record_key = key(record)
        if record_key in seen:
            continue
        seen.add(record_key)
        unique.append(record)
    return unique


def _resolve_profile(framework_id: str | FrameworkId) -> FrameworkProfile:
    profile = get_framework(framework_id)
    if profile is None:
        raise ValueError(f"Unknown framework: {framework_id}")
    return profile


class LogMonitor:
    """Harvests and caches classified errors from dev-server logs.

    Attributes:
        capabilities: Sandbox capability adapter.
        store: Error cache store for the per-framework documents.
        monitor_tail_lines: Lines tailed per log file on a monitor pass.
        check_tail_lines: Lines tailed per log file on an explicit check.
        max_errors: Most recent errors kept by a monitor pass.
        max_warnings: Most recent warnings kept by a monitor pass.
        max_info: Most recent info lines returned by a monitor pass.
        max_reported: Errors kept in the cache when reporting.
    """

    def __init__(
        self,
        capabilities: SandboxCapabilities,
        store: ErrorCacheStore,
        *,
        monitor_tail_lines: int = 100,
        check_tail_lines: int = 50,
        max_errors: int = 10,
        max_warnings: int = 5,
        max_info: int = 3,
        max_reported: int = 20,
    ) -> None:
        self.capabilities = capabilities
        self.store = store
        self.monitor_tail_lines = monitor_tail_lines
        self.check_tail_lines = check_tail_lines
        self.max_errors = max_errors
        self.max_warnings = max_warnings
        self.max_info = max_info
        self.max_reported = max_reported

    @classmethod
    def from_settings(
        cls,
        capabilities: SandboxCapabilities,
        store: ErrorCacheStore,
        settings: "Settings",
    ) -> "LogMonitor":
        return cls(
            capabilities,
            store,
            monitor_tail_lines=settings.monitor_tail_lines,
            check_tail_lines=settings.check_tail_lines,
            max_errors=settings.max_monitor_errors,
            max_warnings=settings.max_monitor_warnings,
            max_info=settings.max_monitor_info,
            max_reported=settings.max_cached_errors,
        )

    async def _classify_log_files(
        self, profile: FrameworkProfile, lines: int
    ) -> tuple[list[str], list[ErrorRecord]]:
        """Tail every existing log file and classify its lines, in file order."""
        existing: list[str] = []
        records: list[ErrorRecord] = []
        for log_file in profile.log_files:
            if not await self.capabilities.file_exists(log_file):
                continue
            existing.append(log_file)
            for line in await self.capabilities.tail(log_file, lines):
                record = classify_line(line, profile)
                if record is not None:
                    records.append(record)
        return existing, records

    async def monitor(self, framework_id: str | FrameworkId) -> MonitorReport:
        """Run one monitor pass and overwrite the framework's cache.

        Cached errors and warnings come first, newly classified lines after
        them. Each list is deduplicated keeping the first occurrence and
        then cut to its most recent entries.

        Args:
            framework_id: The framework whose log files are tailed.

        Returns:
            MonitorReport with errors, warnings, info and a summary.

        Raises:
            ValueError: If the framework id is not registered.
        """
        profile = _resolve_profile(framework_id)

        cache = await self.store.read(profile.id)
        errors: list[ErrorRecord] = list(cache.errors) if cache else []
        warnings: list[ErrorRecord] = list(cache.warnings) if cache else []
        info: list[ErrorRecord] = []

        log_files, records = await self._classify_log_files(
            profile, self.monitor_tail_lines
        )
        for record in records:
            if record.type == ErrorKind.WARNING:
                warnings.append(record)
            elif record.type == ErrorKind.SUCCESS:
                info.append(record)
            else:
                errors.append(record)

        errors = _dedupe(errors, lambda r: r.dedup_key)[-self.max_errors :]
        warnings = _dedupe(warnings, lambda r: r.message)[-self.max_warnings :]
        info = info[-self.max_info :]

        checked_at = datetime.now(UTC)
        await self.store.write(
            ErrorCache(
                errors=errors,
                warnings=warnings,
                last_checked=epoch_millis(checked_at.timestamp()),
                framework=str(profile.id),
            )
        )

        logger.info(
            "logs_monitored",
            framework=str(profile.id),
            log_files=len(log_files),
            errors=len(errors),
            warnings=len(warnings),
        )
        return MonitorReport(
            framework=str(profile.id),
            framework_name=profile.name,
            has_errors=bool(errors),
            has_warnings=bool(warnings),
            errors=errors,
            warnings=warnings,
            info=info,
            log_files=log_files,
            summary=MonitorSummary(
                error_count=len(errors),
                warning_count=len(warnings),
                last_checked=checked_at.isoformat(),
            ),
        )

    async def check_errors(
        self, framework_id: str | FrameworkId, confidence: float = 0.0
    ) -> CheckErrorsResult:
        """Collect cached errors plus errors in the last few log lines.

        Warnings and info lines are ignored; cached warnings are kept as
        they are when the cache is rewritten.
        """
        profile = _resolve_profile(framework_id)

        cache = await self.store.read(profile.id)
        errors: list[ErrorRecord] = list(cache.errors) if cache else []
        warnings: list[ErrorRecord] = list(cache.warnings) if cache else []

        _, records = await self._classify_log_files(profile, self.check_tail_lines)
        errors.extend(record for record in records if is_error(record))
        errors = _dedupe(errors, lambda r: r.dedup_key)

        await self.store.write(
            ErrorCache(errors=errors, warnings=warnings, framework=str(profile.id))
        )

        if errors:
            message = f"Found {len(errors)} error(s) in {profile.name} project"
        else:
            message = f"No errors found in {profile.name} project"
        return CheckErrorsResult(
            framework=str(profile.id),
            confidence=confidence,
            has_errors=bool(errors),
            errors=errors,
            message=message,
        )

    async def report_error(
        self, framework_id: str | FrameworkId, request: ReportErrorRequest
    ) -> ReportErrorResult:
        """Record an externally reported error.

        The error is added to the cache unless one with the same message,
        file and line is already there, the cache keeps only the most recent
        errors, and a line is appended to the dev log so that tailing the
        log shows reported errors too.

        Args:
            framework_id: The framework the error belongs to.
            request: The validated report payload.

        Returns:
            ReportErrorResult with the new error id and the cache size.
        """
        profile = _resolve_profile(framework_id)
        record = ErrorRecord(
            type=request.type,
            message=request.message,
            file=request.file or "Unknown",
            line=request.line,
            column=request.column,
            stack=request.stack,
            framework=str(profile.id),
            reported=True,
        )

        cache = await self.store.read(profile.id)
        errors: list[ErrorRecord] = list(cache.errors) if cache else []
        warnings: list[ErrorRecord] = list(cache.warnings) if cache else []

        is_duplicate = any(e.report_key == record.report_key for e in errors)
        if not is_duplicate:
            errors.append(record)
            errors = errors[-self.max_reported :]

        await self.store.write(
            ErrorCache(errors=errors, warnings=warnings, framework=str(profile.id))
        )

        log_entry = f"[{timestamp_now()}] ERROR: {' '.join(request.message.splitlines())}"
        if request.file:
            log_entry += f" in {request.file}"
        if request.line is not None:
            log_entry += f":{request.line}"
        if not await self.capabilities.write_text(
            profile.dev_log_file, log_entry, append=True
        ):
            logger.warning("report_log_append_failed", log_file=profile.dev_log_file)

        logger.info(
            "error_reported",
            framework=str(profile.id),
            is_duplicate=is_duplicate,
            total_errors=len(errors),
        )
        return ReportErrorResult(
            message=f"Error reported for {profile.name}",
            framework=str(profile.id),
            framework_name=profile.name,
            error_id=f"{profile.id}-{epoch_millis()}",
            is_duplicate=is_duplicate,
            total_errors=len(errors),
        )

    async def clear_cache(self, framework_id: str | FrameworkId) -> ClearCacheResult:
        """Delete every framework's cache, then write a fresh one for this framework.

        Other frameworks' caches are removed too so that a detection result
        that changed between calls does not leave stale errors behind.
        """
        profile = _resolve_profile(framework_id)
        others = [p.id for p in list_frameworks() if p.id != profile.id]

        cleared_files: list[str] = []
        failures: list[str] = []
        for target in [profile.id, *others]:
            path = self.store.path_for(target)
            result = await self.store.delete(target)
            if result.ok:
                cleared_files.append(path)
            elif target == profile.id:
                failures.append(f"Failed to clear {path}: {result.stderr.strip()}")

        if not await self.store.reset(profile.id, cleared=True):
            failures.append(
                f"Failed to create fresh cache {self.store.path_for(profile.id)}"
            )

        logger.info(
            "error_cache_cleared",
            framework=str(profile.id),
            cleared=len(cleared_files),
            failures=len(failures),
        )
        return ClearCacheResult(
            success=not failures,
            message=f"Error cache cleared for {profile.name}",
            framework=str(profile.id),
            framework_name=profile.name,
            cleared_files=cleared_files,
            errors=failures or None,
        )
