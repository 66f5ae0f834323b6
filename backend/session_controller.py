"""Dev-server session control: restarts and framework operations.

This module provides the SessionController, which drives the dev server of
the detected framework inside a sandbox, and the SessionState it guards its
operations with.

Every operation passes two gates before touching the sandbox:
- in-progress: a second call for an operation that is still running returns
  a successful no-op immediately
- cooldown: a call arriving within the cooldown window of the previous
  completed call returns a successful no-op with the remaining seconds

Gate decisions are made in plain synchronous methods of SessionState, so a
check and the following set can never be interleaved by another coroutine.
Under threads each gate would need a lock instead.

Usage:
    >>> state = SessionState()
    >>> controller = SessionController(provider, state)
    >>> result = await controller.restart()
    >>> result.status
    <RestartStatus.RESTARTED: 'restarted'>
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from config import Settings, settings as default_settings
from frameworks.commands import (
    build_command,
    get_command,
    get_health_check_command,
    get_install_command,
    get_log_tail_command,
    get_process_kill_commands,
)
from frameworks.detector import (
    DetectionResult,
    DetectionWeights,
    detect_framework,
    detect_package_manager,
    is_process_running,
)
from frameworks.registry import FrameworkProfile, PackageManagerProfile
from models.schemas import (
    READ_ONLY_OPERATIONS,
    FrameworkConfigSummary,
    FrameworkInfo,
    KillCommandResult,
    LogExcerpt,
    OperationArgs,
    OperationName,
    OperationResult,
    OperationsSnapshot,
    RestartResult,
    RestartStatus,
    epoch_millis,
)
from monitoring.error_cache import ErrorCacheStore
from sandbox.base import CommandResult, SandboxProvider
from sandbox.capabilities import SandboxCapabilities
from sandbox.security import quote_arg

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

TEST_FLAGS: tuple[str, ...] = ("--watchAll=false", "--passWithNoTests")


@dataclass
class OperationState:
    """Progress flag and last completion time of one operation."""

    in_progress: bool = False
    last_executed: float | None = None


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a gate check; ``status`` is None when the call may proceed."""

    status: RestartStatus | None = None
    remaining: float = 0.0

    @property
    def admitted(self) -> bool:
        return self.status is None


@dataclass
class SessionState:
    """Process-wide restart and operation state of one orchestrator.

    Attributes:
        last_restart_time: Clock time of the last completed restart.
        restart_in_progress: True while a restart is running.
        operations: Per-operation progress and completion state.
    """

    last_restart_time: float | None = None
    restart_in_progress: bool = False
    operations: dict[str, OperationState] = field(default_factory=dict)

    def operation(self, name: str) -> OperationState:
        return self.operations.setdefault(name, OperationState())

    def begin_restart(self, now: float, cooldown: float, force: bool = False) -> GateDecision:
        """Check both restart gates and claim the restart if they pass.

        ``force`` skips the cooldown gate but never the in-progress gate.
        """
        if self.restart_in_progress:
            return GateDecision(RestartStatus.ALREADY_IN_PROGRESS)

        if not force and self.last_restart_time is not None:
            elapsed = now - self.last_restart_time
            if elapsed < cooldown:
                return GateDecision(RestartStatus.COOLDOWN, cooldown - elapsed)

        self.restart_in_progress = True
        return GateDecision()

    def finish_restart(self, completed_at: float | None) -> None:
        """Release the restart; a failed restart passes None and keeps the old time."""
        self.restart_in_progress = False
        if completed_at is not None:
            self.last_restart_time = completed_at

    def begin_operation(
        self,
        name: str,
        now: float,
        cooldown: float,
        *,
        force: bool = False,
        read_only: bool = False,
    ) -> GateDecision:
        """Check both gates for ``name`` and claim it if they pass.

        ``force`` skips both gates. Read-only operations skip the cooldown.
        """
        state = self.operation(name)
        if not force:
            if state.in_progress:
                return GateDecision(RestartStatus.ALREADY_IN_PROGRESS)
            if not read_only and state.last_executed is not None:
                elapsed = now - state.last_executed
                if elapsed < cooldown:
                    return GateDecision(RestartStatus.COOLDOWN, cooldown - elapsed)

        state.in_progress = True
        return GateDecision()

    def finish_operation(self, name: str, completed_at: float | None) -> None:
        state = self.operation(name)
        state.in_progress = False
        if completed_at is not None:
            state.last_executed = completed_at

    def snapshot(self) -> OperationsSnapshot:
        return OperationsSnapshot(
            in_progress={name: op.in_progress for name, op in self.operations.items()},
            last_executed={
                name: epoch_millis(op.last_executed)
                for name, op in self.operations.items()
                if op.last_executed is not None
            },
        )


class SessionController:
    """Restarts and operates the dev server of the detected framework.

    Attributes:
        provider: The sandbox the dev server runs in.
        state: Shared session state guarding restarts and operations.
        settings: Timings, detection weights and cache settings.
        capabilities: Failure-tolerant view of ``provider``.
        cache_store: Error cache store reset on restart.
    """

    def __init__(
        self,
        provider: SandboxProvider,
        state: SessionState | None = None,
        settings: Settings | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the SessionController.

        Args:
            provider: Sandbox provider commands are run through.
            state: Session state to share (default: a fresh SessionState).
            settings: Settings to use (default: the process-wide settings).
            clock: Returns the current time in seconds.
            sleep: Awaitable delay used for the settle and warm-up waits.
        """
        self.provider = provider
        self.state = state if state is not None else SessionState()
        self.settings = settings or default_settings
        self.capabilities = SandboxCapabilities(provider)
        self.cache_store = ErrorCacheStore(
            self.capabilities,
            cache_dir=self.settings.error_cache_dir,
            max_errors=self.settings.max_cached_errors,
        )
        self._clock = clock
        self._sleep = sleep
        self._handlers: dict[str, Callable[..., Awaitable[OperationResult]]] = {
            OperationName.INSTALL: self._op_install,
            OperationName.DEV: self._op_dev,
            OperationName.START: self._op_dev,
            OperationName.BUILD: self._op_script,
            OperationName.LINT: self._op_script,
            OperationName.TYPECHECK: self._op_script,
            OperationName.TEST: self._op_test,
            OperationName.CLEAN: self._op_clean,
            OperationName.KILL: self._op_kill,
            OperationName.STOP: self._op_kill,
            OperationName.STATUS: self._op_status,
            OperationName.HEALTH: self._op_status,
            OperationName.LOGS: self._op_logs,
        }

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect(self) -> DetectionResult:
        """Detect the framework from the sandbox's manifest, files and processes."""
        manifest = await self.capabilities.read_manifest()
        return await detect_framework(
            manifest,
            self.capabilities.file_exists,
            self.capabilities.run_command,
            weights=DetectionWeights.from_settings(self.settings),
            default_framework=self.settings.default_framework,
        )

    async def detect_package_manager(self) -> PackageManagerProfile:
        return await detect_package_manager(self.capabilities.file_exists)

    # ------------------------------------------------------------------
    # Restart
    # ------------------------------------------------------------------

    async def restart(self, force: bool = False) -> RestartResult:
        """Restart the dev server of the detected framework.

        A restart already in progress makes this a no-op, as does a call
        within the cooldown window unless ``force`` is set. A provider with
        a native ``restart_dev_server`` is asked to restart; otherwise the
        dev server processes are killed and the dev command is relaunched.

        Args:
            force: Skip the cooldown gate.

        Returns:
            RestartResult with status ``restarted``, ``already-in-progress``
            or ``cooldown``, or ``success=False`` if the restart failed.
        """
        gate = self.state.begin_restart(
            self._clock(), self.settings.restart_cooldown_seconds, force
        )
        if gate.status == RestartStatus.ALREADY_IN_PROGRESS:
            logger.info("restart_skipped_in_progress")
            return RestartResult(
                success=True,
                status=RestartStatus.ALREADY_IN_PROGRESS,
                message="Restart already in progress",
            )
        if gate.status == RestartStatus.COOLDOWN:
            remaining = math.ceil(gate.remaining)
            logger.info("restart_skipped_cooldown", remaining=remaining)
            return RestartResult(
                success=True,
                status=RestartStatus.COOLDOWN,
                message=f"Restart on cooldown, wait {remaining}s",
                cooldown_remaining=remaining,
            )

        completed = False
        detection: DetectionResult | None = None
        try:
            detection = await self.detect()
            package_manager = await self.detect_package_manager()
            profile = detection.profile
            command = get_command(profile.id, "dev", package_manager.name) or profile.dev_command

            native_restart = getattr(self.provider, "restart_dev_server", None)
            if callable(native_restart):
                logger.info("restart_native", framework=str(profile.id))
                await native_restart()
            else:
                await self._relaunch_dev_server(profile, command, reset_cache=True)

            completed = True
            logger.info("restart_completed", framework=str(profile.id), command=command)
            return RestartResult(
                success=True,
                status=RestartStatus.RESTARTED,
                message=f"{profile.name} dev server restarted",
                framework=str(profile.id),
                framework_name=profile.name,
                command=command,
                port=profile.dev_port,
            )
        except Exception as e:
            logger.error("restart_failed", error=str(e), exc_info=True)
            return RestartResult(
                success=False,
                message="Failed to restart dev server",
                framework=str(detection.framework) if detection else None,
                framework_name=detection.profile.name if detection else None,
                error=str(e),
            )
        finally:
            self.state.finish_restart(self._clock() if completed else None)

    async def _kill_dev_server(self, profile: FrameworkProfile) -> list[KillCommandResult]:
        """Run every kill command; individual failures are recorded, not raised."""
        results: list[KillCommandResult] = []
        for command in get_process_kill_commands(profile.id):
            result = await self.capabilities.run_command(command)
            results.append(
                KillCommandResult(
                    command=command,
                    exit_code=result.exit_code,
                    error=result.stderr.strip() or None,
                )
            )
        return results

    async def _relaunch_dev_server(
        self, profile: FrameworkProfile, command: str, *, reset_cache: bool = False
    ) -> CommandResult:
        """Kill, settle, optionally reset the error cache, launch in background, warm up."""
        await self._kill_dev_server(profile)
        await self._sleep(self.settings.kill_settle_seconds)

        if reset_cache:
            await self.cache_store.reset(profile.id)

        launch = await self.capabilities.run_command(
            f"{command} > {quote_arg(profile.dev_log_file)} 2>&1 &"
        )
        if not launch.ok:
            logger.warning(
                "dev_server_launch_failed",
                framework=str(profile.id),
                exit_code=launch.exit_code,
                stderr=launch.stderr[:200],
            )
        await self._sleep(self.settings.dev_warmup_seconds)
        return launch

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def run_operation(
        self,
        name: str,
        packages: list[str] | None = None,
        args: OperationArgs | None = None,
        force: bool = False,
    ) -> OperationResult:
        """Run one framework operation through the in-progress and cooldown gates.

        Args:
            name: Operation name (see OperationName).
            packages: Packages for ``install``; empty installs the lock file.
            args: Extra operation arguments.
            force: Skip both gates.

        Returns:
            OperationResult; command failures are reported in it, not raised.
        """
        operation = str(name)
        if operation not in self._handlers:
            return OperationResult(
                success=False,
                operation=operation,
                error=f"Unknown operation: {operation}",
            )

        args = args or OperationArgs()
        gate = self.state.begin_operation(
            operation,
            self._clock(),
            self.settings.operation_cooldown_seconds,
            force=force,
            read_only=operation in READ_ONLY_OPERATIONS,
        )
        if gate.status == RestartStatus.ALREADY_IN_PROGRESS:
            logger.info("operation_skipped_in_progress", operation=operation)
            return OperationResult(
                success=True,
                operation=operation,
                message=f"Operation {operation} already in progress",
                in_progress=True,
            )
        if gate.status == RestartStatus.COOLDOWN:
            remaining = math.ceil(gate.remaining)
            logger.info("operation_skipped_cooldown", operation=operation, remaining=remaining)
            return OperationResult(
                success=True,
                operation=operation,
                message=f"Operation {operation} on cooldown, wait {remaining}s",
                cooldown=remaining,
            )

        completed = False
        base: dict[str, object] = {"operation": operation}
        try:
            detection = await self.detect()
            package_manager = await self.detect_package_manager()
            base.update(
                framework=str(detection.framework),
                framework_name=detection.profile.name,
                package_manager=package_manager.name,
                confidence=detection.confidence,
            )
            handler = self._handlers[operation]
            result = await handler(
                operation, detection.profile, package_manager, packages or [], args, base
            )
            completed = True
            logger.info(
                "operation_completed",
                operation=operation,
                framework=base["framework"],
                success=result.success,
            )
            return result
        except Exception as e:
            logger.error("operation_failed", operation=operation, error=str(e), exc_info=True)
            return OperationResult(success=False, error=str(e), **base)
        finally:
            self.state.finish_operation(operation, self._clock() if completed else None)

    async def _run_captured(self, command: str, base: dict[str, object]) -> OperationResult:
        result = await self.capabilities.run_command(command)
        return OperationResult(
            success=result.ok,
            command=command,
            exit_code=result.exit_code,
            output=result.stdout,
            error=result.stderr or None,
            **base,
        )

    async def _op_install(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        command = get_install_command(packages, package_manager.name, args.dev)
        return await self._run_captured(command, base)

    async def _op_dev(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        command = get_command(profile.id, "dev", package_manager.name) or profile.dev_command
        launch = await self._relaunch_dev_server(profile, command)
        health = await self.capabilities.run_command(get_health_check_command(profile.id))
        return OperationResult(
            success=launch.ok,
            message=f"{profile.name} dev server started",
            command=command,
            exit_code=launch.exit_code,
            error=launch.stderr or None,
            healthy=health.ok,
            port=profile.dev_port,
            url=f"http://localhost:{profile.dev_port}",
            log_file=profile.dev_log_file,
            **base,
        )

    async def _op_script(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        command = build_command(profile.id, operation, package_manager.name, args.extra)
        if command is None:
            return OperationResult(
                success=False,
                error=f"No {operation} command for {profile.name}",
                **base,
            )
        return await self._run_captured(command, base)

    async def _op_test(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        command = build_command(
            profile.id, "test", package_manager.name, [*TEST_FLAGS, *args.extra]
        )
        if command is None:
            return OperationResult(
                success=False,
                error=f"No test command for {profile.name}",
                **base,
            )
        return await self._run_captured(command, base)

    async def _op_clean(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        outputs: list[str] = []
        errors: list[str] = []
        exit_code = 0
        for command in profile.commands.clean:
            result = await self.capabilities.run_command(command)
            if result.stdout:
                outputs.append(result.stdout)
            if result.stderr:
                errors.append(result.stderr)
            if not result.ok and exit_code == 0:
                exit_code = result.exit_code
        return OperationResult(
            success=exit_code == 0,
            message=f"Cleaned {profile.name} build artifacts",
            command=" && ".join(profile.commands.clean),
            exit_code=exit_code,
            output="\n".join(outputs),
            error="\n".join(errors) or None,
            **base,
        )

    async def _op_kill(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        kill_commands = await self._kill_dev_server(profile)
        return OperationResult(
            success=True,
            message=f"Stopped {profile.name} dev server",
            kill_commands=kill_commands,
            **base,
        )

    async def _op_status(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        command = get_health_check_command(profile.id)
        health = await self.capabilities.run_command(command)
        running = await is_process_running(self.capabilities.run_command, profile.process_name)
        return OperationResult(
            success=True,
            command=command,
            exit_code=health.exit_code,
            healthy=health.ok,
            port=profile.dev_port,
            url=f"http://localhost:{profile.dev_port}",
            process_running=running,
            **base,
        )

    async def _op_logs(
        self,
        operation: str,
        profile: FrameworkProfile,
        package_manager: PackageManagerProfile,
        packages: list[str],
        args: OperationArgs,
        base: dict[str, object],
    ) -> OperationResult:
        logs: list[LogExcerpt] = []
        for command in get_log_tail_command(profile.id, args.lines):
            result = await self.capabilities.run_command(command)
            logs.append(LogExcerpt(command=command, content=result.stdout))
        return OperationResult(success=True, logs=logs, **base)

    # ------------------------------------------------------------------
    # Info
    # ------------------------------------------------------------------

    async def framework_info(self) -> FrameworkInfo:
        """Describe the detected framework and the operation state table."""
        detection = await self.detect()
        package_manager = await self.detect_package_manager()
        profile = detection.profile
        return FrameworkInfo(
            framework=str(detection.framework),
            framework_name=profile.name,
            confidence=detection.confidence,
            evidence=list(detection.evidence),
            package_manager=package_manager.name,
            config=FrameworkConfigSummary(
                dev_port=profile.dev_port,
                dev_command=get_command(profile.id, "dev", package_manager.name)
                or profile.dev_command,
                build_command=get_command(profile.id, "build", package_manager.name)
                or profile.build_command,
                log_files=list(profile.log_files),
            ),
            operations=self.state.snapshot(),
        )
