"""Tests for sandbox/capabilities.py -- failure-tolerant sandbox access."""

from unittest.mock import AsyncMock

from sandbox.base import CommandResult
from sandbox.capabilities import SandboxCapabilities
from tests.conftest import FakeSandbox


class TestRunCommand:
    async def test_passes_through(self, sandbox: FakeSandbox) -> None:
        sandbox.responses["npm run lint"] = CommandResult(stdout="ok", stderr="", exit_code=0)
        result = await SandboxCapabilities(sandbox).run_command("npm run lint")
        assert result.stdout == "ok"

    async def test_raising_provider_becomes_exit_code_1(self) -> None:
        provider = AsyncMock()
        provider.run_command.side_effect = ConnectionError("container vanished")

        result = await SandboxCapabilities(provider).run_command("npm run dev")

        assert result.exit_code == 1
        assert result.stdout == ""
        assert result.stderr == "container vanished"


class TestFileAccess:
    async def test_file_exists(self, sandbox: FakeSandbox) -> None:
        sandbox.files["vite.config.ts"] = ""
        capabilities = SandboxCapabilities(sandbox)
        assert await capabilities.file_exists("vite.config.ts") is True
        assert await capabilities.file_exists("next.config.js") is False

    async def test_file_exists_on_failure(self, sandbox: FakeSandbox) -> None:
        sandbox.fail_on.append("test -f")
        assert await SandboxCapabilities(sandbox).file_exists("vite.config.ts") is False

    async def test_quotes_paths(self, sandbox: FakeSandbox) -> None:
        await SandboxCapabilities(sandbox).file_exists("src/my file.ts")
        assert sandbox.commands == ["test -f 'src/my file.ts'"]

    async def test_read_manifest(self, sandbox: FakeSandbox) -> None:
        sandbox.write_manifest({"name": "app"})
        assert await SandboxCapabilities(sandbox).read_manifest() == {"name": "app"}

    async def test_read_manifest_absent_or_invalid(self, sandbox: FakeSandbox) -> None:
        capabilities = SandboxCapabilities(sandbox)
        assert await capabilities.read_manifest() is None

        sandbox.files["package.json"] = "{broken"
        assert await capabilities.read_manifest() is None

        sandbox.files["package.json"] = "[1, 2]"
        assert await capabilities.read_manifest() is None

    async def test_tail_skips_blank_lines(self, sandbox: FakeSandbox) -> None:
        sandbox.files["/tmp/vite-dev.log"] = "a\n\n  \nb\nc\n"
        assert await SandboxCapabilities(sandbox).tail("/tmp/vite-dev.log", 4) == ["b", "c"]

    async def test_tail_missing_file(self, sandbox: FakeSandbox) -> None:
        assert await SandboxCapabilities(sandbox).tail("/tmp/none.log", 10) == []

    async def test_write_and_append(self, sandbox: FakeSandbox) -> None:
        capabilities = SandboxCapabilities(sandbox)
        assert await capabilities.write_text("/tmp/out.log", "it's one") is True
        assert await capabilities.write_text("/tmp/out.log", "two", append=True) is True
        assert sandbox.files["/tmp/out.log"] == "it's one\ntwo\n"

    async def test_remove(self, sandbox: FakeSandbox) -> None:
        sandbox.files["/tmp/x.json"] = "{}"
        result = await SandboxCapabilities(sandbox).remove("/tmp/x.json")
        assert result.ok
        assert "/tmp/x.json" not in sandbox.files
