"""Dev-session orchestrator facade.

This module provides DevSessionOrchestrator, the single entry point calling
collaborators (an HTTP layer, the CLI in main.py) use to detect the
framework, drive the dev server and read its errors. It owns the
process-wide SessionState and the currently bound sandbox.

Usage:
    >>> from orchestrator import get_orchestrator
    >>> from sandbox import DockerSandboxProvider
    >>>
    >>> orchestrator = get_orchestrator()
    >>> orchestrator.bind_sandbox(DockerSandboxProvider.from_settings("my-container"))
    >>> detection = await orchestrator.detect_framework()
    >>> result = await orchestrator.restart_session()
    >>> report = await orchestrator.monitor_logs()
"""

import asyncio
import time
from typing import Any

import structlog

from config import Settings, settings as default_settings
from frameworks.detector import DetectionResult
from models.schemas import (
    CheckErrorsResult,
    ClearCacheResult,
    FrameworkInfo,
    MonitorReport,
    OperationArgs,
    OperationResult,
    ReportErrorRequest,
    ReportErrorResult,
    RestartResult,
)
from monitoring.log_monitor import LogMonitor
from sandbox.base import NoActiveSandboxError, SandboxProvider
from session_controller import Clock, SessionController, SessionState, Sleep

logger = structlog.get_logger(__name__)


class DevSessionOrchestrator:
    """Exposes detection, session control and log monitoring for one sandbox.

    The session state outlives sandbox bindings: rebinding keeps cooldowns
    and in-progress flags. Every operation raises NoActiveSandboxError when
    no sandbox is bound; all other failures are returned in the results.

    Attributes:
        settings: Settings passed to the controller and monitor.
        state: Process-wide restart and operation state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        state: SessionState | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or default_settings
        self.state = state if state is not None else SessionState()
        self._clock = clock
        self._sleep = sleep
        self._provider: SandboxProvider | None = None
        self._controller: SessionController | None = None
        self._monitor: LogMonitor | None = None

    @property
    def has_sandbox(self) -> bool:
        return self._provider is not None

    def bind_sandbox(self, provider: SandboxProvider) -> None:
        """Bind the sandbox all subsequent operations run against."""
        self._provider = provider
        self._controller = SessionController(
            provider,
            self.state,
            self.settings,
            clock=self._clock,
            sleep=self._sleep,
        )
        self._monitor = LogMonitor.from_settings(
            self._controller.capabilities,
            self._controller.cache_store,
            self.settings,
        )
        logger.info("sandbox_bound", provider=type(provider).__name__)

    def unbind_sandbox(self) -> None:
        self._provider = None
        self._controller = None
        self._monitor = None
        logger.info("sandbox_unbound")

    def _require_sandbox(self) -> tuple[SessionController, LogMonitor]:
        if self._controller is None or self._monitor is None:
            raise NoActiveSandboxError()
        return self._controller, self._monitor

    async def detect_framework(self) -> DetectionResult:
        controller, _ = self._require_sandbox()
        return await controller.detect()

    async def restart_session(self, force: bool = False) -> RestartResult:
        controller, _ = self._require_sandbox()
        return await controller.restart(force=force)

    async def run_operation(
        self,
        name: str,
        packages: list[str] | None = None,
        args: OperationArgs | dict[str, Any] | None = None,
        force: bool = False,
    ) -> OperationResult:
        """Run a named framework operation.

        Args:
            name: Operation name, e.g. ``install``, ``dev`` or ``logs``.
            packages: Packages for ``install``.
            args: OperationArgs, or a dict validated into one.
            force: Skip the in-progress and cooldown gates.

        Raises:
            NoActiveSandboxError: If no sandbox is bound.
            pydantic.ValidationError: If ``args`` is an invalid dict.
        """
        controller, _ = self._require_sandbox()
        if isinstance(args, dict):
            args = OperationArgs.model_validate(args)
        return await controller.run_operation(name, packages, args, force=force)

    async def framework_info(self) -> FrameworkInfo:
        controller, _ = self._require_sandbox()
        return await controller.framework_info()

    async def monitor_logs(self) -> MonitorReport:
        controller, monitor = self._require_sandbox()
        detection = await controller.detect()
        return await monitor.monitor(detection.framework)

    async def check_errors(self) -> CheckErrorsResult:
        controller, monitor = self._require_sandbox()
        detection = await controller.detect()
        return await monitor.check_errors(detection.framework, detection.confidence)

    async def report_error(
        self, payload: ReportErrorRequest | dict[str, Any]
    ) -> ReportErrorResult:
        """Record an externally reported error for the detected framework.

        Args:
            payload: ReportErrorRequest, or a dict with ``error`` (or
                ``message``) and optional ``type``, ``file``, ``line``,
                ``column`` and ``stack``.

        Raises:
            NoActiveSandboxError: If no sandbox is bound.
            pydantic.ValidationError: If the payload has no message.
        """
        controller, monitor = self._require_sandbox()
        if not isinstance(payload, ReportErrorRequest):
            payload = ReportErrorRequest.model_validate(payload)
        detection = await controller.detect()
        return await monitor.report_error(detection.framework, payload)

    async def clear_error_cache(self) -> ClearCacheResult:
        controller, monitor = self._require_sandbox()
        detection = await controller.detect()
        return await monitor.clear_cache(detection.framework)


_orchestrator: DevSessionOrchestrator | None = None


def get_orchestrator() -> DevSessionOrchestrator:
    """Get the global DevSessionOrchestrator singleton.

    The singleton is created on first call using ``config.settings``.

    Returns:
        The global DevSessionOrchestrator instance.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DevSessionOrchestrator(default_settings)
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset the global DevSessionOrchestrator singleton.

    Primarily useful for testing.
    """
    global _orchestrator
    _orchestrator = None
