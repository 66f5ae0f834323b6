"""Docker-backed sandbox provider.

This module provides DockerSandboxProvider, the production SandboxProvider:
it runs the orchestrator's shell commands inside an existing Docker
container that hosts the project workspace and its dev server.
"""

import asyncio

import docker
import structlog
from docker.errors import APIError, NotFound

from config import settings
from sandbox.base import CommandResult
from sandbox.security import sanitize_output, validate_command

logger = structlog.get_logger(__name__)


class DockerSandboxProvider:
    """Runs sandbox commands in a Docker container via ``docker exec``.

    The provider has no native dev-server restart primitive, so restarts
    through it use the orchestrator's manual kill/relaunch sequence.

    Attributes:
        container_id: ID or name of the container hosting the workspace.
        workdir: Working directory commands run in.
        user: User commands run as.
        timeout: Maximum execution time per command, in seconds.
    """

    def __init__(
        self,
        container_id: str,
        client: docker.DockerClient | None = None,
        workdir: str = "/workspace",
        user: str = "node",
        timeout: int = 120,
        unrestricted: bool = True,
    ) -> None:
        """Initialize the provider.

        Args:
            container_id: ID or name of the target container.
            client: Docker client to use (default: lazily created from env).
            workdir: Working directory for commands (default: /workspace).
            user: User to run commands as (default: node).
            timeout: Per-command timeout in seconds (default: 120).
            unrestricted: If False, enforce the strict command allowlist.
        """
        self.container_id = container_id
        self.workdir = workdir
        self.user = user
        self.timeout = timeout
        self.unrestricted = unrestricted
        self._client = client

    @classmethod
    def from_settings(cls, container_id: str) -> "DockerSandboxProvider":
        """Create a provider configured from ``config.settings``."""
        return cls(
            container_id,
            workdir=settings.sandbox_workdir,
            user=settings.sandbox_user,
            timeout=settings.command_timeout_seconds,
            unrestricted=settings.sandbox_allow_unrestricted_commands,
        )

    @property
    def client(self) -> docker.DockerClient:
        """Lazy initialization of Docker client."""
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    async def run_command(self, command: str) -> CommandResult:
        """Execute a shell command inside the container.

        Validates the command against security policy before execution.

        Args:
            command: The shell command to run.

        Returns:
            CommandResult with stdout, stderr, and exit code. Rejected
            commands report exit code 1; timeouts report exit code 124.

        Raises:
            NotFound: If the container no longer exists.
            APIError: If the Docker daemon rejects the exec.
        """
        is_valid, error_msg = validate_command(
            command,
            unrestricted=self.unrestricted,
        )
        if not is_valid:
            logger.warning("command_rejected", command=command[:80], reason=error_msg)
            return CommandResult(
                stdout="",
                stderr=f"Command rejected: {error_msg}",
                exit_code=1,
            )

        try:
            result = await asyncio.wait_for(
                asyncio.get_running_loop().run_in_executor(
                    None,
                    self._execute_in_container,
                    command,
                ),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.warning(
                "command_timeout",
                container_id=self.container_id[:12],
                command=command[:50],
                timeout=self.timeout,
            )
            return CommandResult(
                stdout="",
                stderr=f"Command timed out after {self.timeout} seconds",
                exit_code=124,
                timed_out=True,
            )

        logger.debug(
            "command_executed",
            container_id=self.container_id[:12],
            command=command[:50],
            exit_code=result.exit_code,
        )
        return result

    def _execute_in_container(self, command: str) -> CommandResult:
        """Execute command in container (blocking operation)."""
        container = self.client.containers.get(self.container_id)

        result = container.exec_run(
            ["/bin/bash", "-lc", command],
            user=self.user,
            workdir=self.workdir,
            demux=True,
        )

        stdout_bytes: bytes = b""
        stderr_bytes: bytes = b""
        if isinstance(result.output, tuple):
            stdout_bytes = result.output[0] or b""
            stderr_bytes = result.output[1] or b""
        elif result.output:
            # Older docker-py versions ignore demux.
            stdout_bytes = result.output

        return CommandResult(
            stdout=sanitize_output(stdout_bytes.decode("utf-8", errors="replace")),
            stderr=sanitize_output(stderr_bytes.decode("utf-8", errors="replace")),
            exit_code=result.exit_code if result.exit_code is not None else 1,
        )

    async def is_running(self) -> bool:
        """Return True if the container exists and is running."""
        try:
            container = await asyncio.get_running_loop().run_in_executor(
                None,
                self.client.containers.get,
                self.container_id,
            )
        except NotFound:
            return False
        except APIError as e:
            logger.error(
                "container_status_failed",
                container_id=self.container_id[:12],
                error=str(e),
            )
            return False
        return container.status == "running"

    def is_docker_available(self) -> bool:
        """Check if the Docker daemon is reachable.

        Returns:
            True if the Docker daemon responds to a ping.
        """
        try:
            self.client.ping()
            return True
        except Exception:
            return False
