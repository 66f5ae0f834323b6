"""Tests for main.py -- the command-line entry point."""

import json
from unittest.mock import patch

import pytest

import main
from tests.conftest import VITE_MANIFEST, FakeSandbox


class CliSandbox(FakeSandbox):
    """FakeSandbox with the container checks the CLI performs."""

    def __init__(self, available: bool = True, running: bool = True) -> None:
        super().__init__(files={"vite.config.ts": ""})
        self.write_manifest(VITE_MANIFEST)
        self.available = available
        self.running = running

    def is_docker_available(self) -> bool:
        return self.available

    async def is_running(self) -> bool:
        return self.running


def _run(sandbox: CliSandbox, argv: list[str], capsys: pytest.CaptureFixture[str]) -> tuple[int, dict]:
    with patch.object(main.DockerSandboxProvider, "from_settings", return_value=sandbox):
        code = main.main(argv)
    return code, json.loads(capsys.readouterr().out)


class TestCli:
    def test_detect(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, payload = _run(CliSandbox(), ["box", "detect"], capsys)
        assert code == 0
        assert payload["framework"] == "vite"
        assert payload["confidence"] == 1.0

    def test_op_uses_wire_names(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, payload = _run(CliSandbox(), ["box", "op", "install", "--packages", "zod"], capsys)
        assert code == 0
        assert payload["command"] == "npm install zod"
        assert payload["packageManager"] == "npm"
        assert payload["exitCode"] == 0

    def test_op_extra_args(self, capsys: pytest.CaptureFixture[str]) -> None:
        _, payload = _run(CliSandbox(), ["box", "op", "build", "--extra", "--mode", "staging"], capsys)
        assert payload["command"] == "npm run build --mode staging"

    def test_report(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, payload = _run(
            CliSandbox(), ["box", "report", "boom", "--file", "src/a.ts", "--line", "3"], capsys
        )
        assert code == 0
        assert payload["isDuplicate"] is False
        assert payload["totalErrors"] == 1

    def test_invalid_args_fail_cleanly(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, payload = _run(CliSandbox(), ["box", "op", "logs", "--lines", "0"], capsys)
        assert code == 1
        assert payload["success"] is False

    def test_docker_unavailable(self, capsys: pytest.CaptureFixture[str]) -> None:
        sandbox = CliSandbox(available=False)
        code, payload = _run(sandbox, ["box", "detect"], capsys)
        assert code == 1
        assert payload["error"] == "Docker daemon is not reachable"
        assert sandbox.commands == []

    def test_container_not_running(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, payload = _run(CliSandbox(running=False), ["box", "restart"], capsys)
        assert code == 1
        assert payload["error"] == "Container box is not running"

    def test_unknown_operation_rejected_by_parser(self) -> None:
        with pytest.raises(SystemExit):
            main.build_parser().parse_args(["box", "op", "deploy"])
