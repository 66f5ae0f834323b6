"""Shared test fixtures for backend tests.

Provides an in-memory FakeSandbox that interprets the shell commands the
orchestrator emits, plus settings and clock helpers, so tests never touch
a real Docker container.
"""

import json
import shlex
import sys
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Ensure the backend package root is on sys.path so that absolute imports
# like ``from sandbox.security import ...`` resolve correctly when running
# pytest from the repository root.
_backend_root = str(
    __import__("pathlib").Path(__file__).resolve().parent.parent
)
if _backend_root not in sys.path:
    sys.path.insert(0, _backend_root)

from config import Settings  # noqa: E402
from orchestrator import reset_orchestrator  # noqa: E402
from sandbox.base import CommandResult  # noqa: E402

# ---------------------------------------------------------------------------
# Fake sandbox
# ---------------------------------------------------------------------------


class FakeSandbox:
    """SandboxProvider backed by a dict of files.

    Understands ``test -f``, ``cat``, ``tail -n``, ``rm -f``,
    ``printf '%s\\n' ... >``/``>>`` and the ``ps aux | grep`` process check.
    Any other command returns the entry in ``responses`` whose key it starts
    with, or an empty success. Every command is recorded in ``commands``.

    Attributes:
        files: Path -> content of the sandbox filesystem.
        processes: Process names reported as running.
        responses: Command prefix -> CommandResult for other commands.
        fail_on: Substrings that make run_command raise.
        commands: Every command received, in order.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        processes: list[str] | None = None,
        responses: dict[str, CommandResult] | None = None,
    ) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.processes: list[str] = list(processes or [])
        self.responses: dict[str, CommandResult] = dict(responses or {})
        self.fail_on: list[str] = []
        self.commands: list[str] = []

    def write_manifest(self, manifest: dict[str, Any]) -> None:
        self.files["package.json"] = json.dumps(manifest)

    def read_json(self, path: str) -> Any:
        return json.loads(self.files[path])

    def commands_starting_with(self, prefix: str) -> list[str]:
        return [c for c in self.commands if c.startswith(prefix)]

    def side_effect_commands(self) -> list[str]:
        """Commands other than file reads and process checks."""
        readonly = ("test -f", "cat ", "ps aux", "tail -n")
        return [c for c in self.commands if not c.startswith(readonly)]

    async def run_command(self, command: str) -> CommandResult:
        self.commands.append(command)
        for marker in self.fail_on:
            if marker in command:
                raise RuntimeError(f"sandbox exploded on {marker}")

        if command.startswith("ps aux"):
            name = shlex.split(command)[-1]
            matches = [p for p in self.processes if name.lower() in p.lower()]
            if matches:
                return CommandResult(stdout="\n".join(matches), stderr="", exit_code=0)
            return CommandResult(stdout="", stderr="", exit_code=1)

        tokens = shlex.split(command)
        program = tokens[0]

        if program == "test" and tokens[1] == "-f":
            return CommandResult(stdout="", stderr="", exit_code=0 if tokens[2] in self.files else 1)

        if program == "cat":
            path = tokens[1]
            if path not in self.files:
                return CommandResult(
                    stdout="", stderr=f"cat: {path}: No such file or directory", exit_code=1
                )
            return CommandResult(stdout=self.files[path], stderr="", exit_code=0)

        if program == "tail":
            count, path = int(tokens[2]), tokens[3]
            if path not in self.files:
                if "||" in tokens:
                    return CommandResult(stdout=f"Log file {path} not found\n", stderr="", exit_code=0)
                return CommandResult(stdout="", stderr="tail: cannot open", exit_code=1)
            lines = self.files[path].splitlines()[-count:]
            return CommandResult(stdout="\n".join(lines) + "\n", stderr="", exit_code=0)

        if program == "rm" and tokens[1] == "-f":
            for path in tokens[2:]:
                self.files.pop(path, None)
            return CommandResult(stdout="", stderr="", exit_code=0)

        if program == "printf" and len(tokens) == 5 and tokens[3] in (">", ">>"):
            content, redirect, path = tokens[2], tokens[3], tokens[4]
            if redirect == ">>":
                self.files[path] = self.files.get(path, "") + content + "\n"
            else:
                self.files[path] = content + "\n"
            return CommandResult(stdout="", stderr="", exit_code=0)

        for prefix, result in self.responses.items():
            if command.startswith(prefix):
                return result
        return CommandResult(stdout="", stderr="", exit_code=0)


class NativeRestartSandbox(FakeSandbox):
    """FakeSandbox that also exposes a native dev-server restart."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.restart_dev_server = AsyncMock()


class FakeClock:
    """Manually advanced clock for cooldown tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------

VITE_MANIFEST: dict[str, Any] = {
    "name": "vite-app",
    "scripts": {"dev": "vite", "build": "vite build", "preview": "vite preview"},
    "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
    "devDependencies": {"vite": "^5.0.0", "@vitejs/plugin-react": "^4.2.0"},
}

NEXT_MANIFEST: dict[str, Any] = {
    "name": "next-app",
    "scripts": {"dev": "next dev", "build": "next build", "start": "next start"},
    "dependencies": {"next": "14.0.0", "react": "^18.2.0", "react-dom": "^18.2.0"},
}

CRA_MANIFEST: dict[str, Any] = {
    "name": "cra-app",
    "scripts": {"start": "react-scripts start", "build": "react-scripts build"},
    "dependencies": {"react-scripts": "5.0.1"},
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_orchestrator() -> Any:
    """Never leak the process-wide orchestrator between tests."""
    reset_orchestrator()
    yield
    reset_orchestrator()


@pytest.fixture()
def sandbox() -> FakeSandbox:
    """An empty sandbox: no manifest, no files, no processes."""
    return FakeSandbox()


@pytest.fixture()
def vite_sandbox() -> FakeSandbox:
    """A Vite project with its config file on disk."""
    fake = FakeSandbox(files={"vite.config.ts": "export default {}"})
    fake.write_manifest(VITE_MANIFEST)
    return fake


@pytest.fixture()
def next_sandbox() -> FakeSandbox:
    """A Next.js project installed with yarn."""
    fake = FakeSandbox(files={"next.config.js": "module.exports = {}", "yarn.lock": ""})
    fake.write_manifest(NEXT_MANIFEST)
    return fake


@pytest.fixture()
def test_settings() -> Settings:
    """Default settings with the fixed delays left in place (sleep is faked)."""
    return Settings(log_level="WARNING", error_cache_dir="/tmp")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()
