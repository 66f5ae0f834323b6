"""Core sandbox types shared by the orchestrator and provider adapters."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class NoActiveSandboxError(RuntimeError):
    """Raised when an operation needs a sandbox but none is bound."""

    def __init__(self, message: str = "No active sandbox") -> None:
        super().__init__(message)


@dataclass
class CommandResult:
    """Result of executing a command in the sandbox."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class SandboxProvider(Protocol):
    """A remote sandbox the dev server runs in.

    Providers must implement ``run_command``. A provider may additionally
    expose ``async restart_dev_server()``; when present, restarts use it
    instead of the manual kill/relaunch sequence.
    """

    async def run_command(self, command: str) -> CommandResult:
        """Run a shell command inside the sandbox workspace."""
        ...
