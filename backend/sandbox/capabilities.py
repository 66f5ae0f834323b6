"""Failure-tolerant capabilities derived from a sandbox provider.

Detection and log monitoring consume three capabilities: read the package
manifest, check whether a file exists and run a command. Each one downgrades
provider failures to a neutral default here, at the point of use, so that
callers always complete with best-effort data.
"""

import json
from typing import Any

import structlog

from sandbox.base import CommandResult, SandboxProvider
from sandbox.security import quote_arg

logger = structlog.get_logger(__name__)


class SandboxCapabilities:
    """Wraps a SandboxProvider with the orchestrator's capability contract.

    Attributes:
        provider: The underlying sandbox provider.
    """

    def __init__(self, provider: SandboxProvider) -> None:
        self.provider = provider

    async def run_command(self, command: str) -> CommandResult:
        """Run a command; a raising provider yields exit code 1 with the message on stderr."""
        try:
            return await self.provider.run_command(command)
        except Exception as e:
            logger.warning(
                "sandbox_command_failed",
                command=command[:80],
                error=str(e),
            )
            return CommandResult(stdout="", stderr=str(e), exit_code=1)

    async def file_exists(self, path: str) -> bool:
        """Return True if ``path`` is a regular file in the sandbox."""
        result = await self.run_command(f"test -f {quote_arg(path)}")
        return result.exit_code == 0

    async def read_text(self, path: str) -> str | None:
        """Return the contents of ``path`` or None if it cannot be read."""
        result = await self.run_command(f"cat {quote_arg(path)}")
        if result.exit_code != 0:
            return None
        return result.stdout

    async def read_json(self, path: str) -> Any | None:
        """Return the parsed JSON document at ``path`` or None."""
        content = await self.read_text(path)
        if content is None:
            return None
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.debug("sandbox_json_unparseable", path=path, error=str(e))
            return None

    async def read_manifest(self) -> dict[str, Any] | None:
        """Return the workspace's package.json, or None if absent or invalid."""
        data = await self.read_json("package.json")
        if not isinstance(data, dict):
            return None
        return data

    async def tail(self, path: str, lines: int) -> list[str]:
        """Return the last ``lines`` non-blank lines of ``path``."""
        result = await self.run_command(f"tail -n {int(lines)} {quote_arg(path)}")
        if result.exit_code != 0:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def write_text(self, path: str, content: str, *, append: bool = False) -> bool:
        """Write (or append) one line of text to ``path``. Returns success."""
        redirect = ">>" if append else ">"
        result = await self.run_command(
            f"printf '%s\\n' {quote_arg(content)} {redirect} {quote_arg(path)}"
        )
        return result.exit_code == 0

    async def remove(self, path: str) -> CommandResult:
        """Remove ``path`` (missing files are not an error)."""
        return await self.run_command(f"rm -f {quote_arg(path)}")
