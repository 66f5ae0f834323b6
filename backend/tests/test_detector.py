"""Tests for frameworks/detector.py -- scoring, fallbacks and helpers.

Detection must never fail: every capability is optional and a capability
that raises counts as a negative signal.
"""

from typing import Any

import pytest

from frameworks.detector import (
    DetectionWeights,
    detect_framework,
    detect_package_manager,
    extract_package_from_import_error,
    get_log_file_paths,
    get_restart_command,
    is_process_running,
)
from models.schemas import FrameworkId
from sandbox.base import CommandResult


def _files(*paths: str):
    present = set(paths)

    async def file_exists(path: str) -> bool:
        return path in present

    return file_exists


async def _raising_file_exists(path: str) -> bool:
    raise OSError("sandbox gone")


class TestDetectFramework:
    @pytest.mark.parametrize(
        ("manifest", "expected"),
        [
            ({"dependencies": {"next": "14"}}, FrameworkId.NEXTJS),
            ({"devDependencies": {"vite": "5"}}, FrameworkId.VITE),
            ({"dependencies": {"react-scripts": "5"}}, FrameworkId.CRA),
        ],
    )
    async def test_single_primary_dependency(
        self, manifest: dict[str, Any], expected: FrameworkId
    ) -> None:
        result = await detect_framework(manifest)
        assert result.framework == expected
        assert result.confidence >= 0.3

    async def test_no_capabilities_falls_back(self) -> None:
        result = await detect_framework()
        assert result.framework == FrameworkId.VITE
        assert result.confidence == 0
        assert result.evidence == ("No clear framework detected, defaulting to Vite",)

    async def test_custom_default_framework(self) -> None:
        result = await detect_framework(default_framework="cra")
        assert result.framework == FrameworkId.CRA
        assert result.confidence == 0

    async def test_unknown_default_framework_uses_vite(self) -> None:
        result = await detect_framework(default_framework="svelte")
        assert result.framework == FrameworkId.VITE

    async def test_non_dict_manifest_is_ignored(self) -> None:
        result = await detect_framework(["not", "a", "manifest"])  # type: ignore[arg-type]
        assert result.confidence == 0

    async def test_evidence_lists_every_signal(self) -> None:
        manifest = {
            "scripts": {"dev": "vite", "build": "vite build"},
            "devDependencies": {"vite": "5", "@vitejs/plugin-react": "4"},
        }
        result = await detect_framework(manifest, _files("vite.config.ts"))
        assert result.framework == FrameworkId.VITE
        assert result.evidence == (
            "Found dependency: vite",
            "Found dev dependency: @vitejs/plugin-react",
            "Has dev script",
            "Has build script",
            "Found config file: vite.config.ts",
        )
        assert result.confidence == 1.0

    async def test_config_file_alone(self) -> None:
        result = await detect_framework(None, _files("next.config.mjs"))
        assert result.framework == FrameworkId.NEXTJS
        assert result.confidence == pytest.approx(0.25)

    async def test_raising_file_check_counts_as_absent(self) -> None:
        result = await detect_framework({"dependencies": {"vite": "5"}}, _raising_file_exists)
        assert result.framework == FrameworkId.VITE
        assert result.confidence == pytest.approx(0.3)

    async def test_running_process_adds_score(self) -> None:
        async def run_command(command: str) -> CommandResult:
            if "vite" in command:
                return CommandResult(stdout="node vite", stderr="", exit_code=0)
            return CommandResult(stdout="", stderr="", exit_code=1)

        result = await detect_framework(None, None, run_command)
        assert result.framework == FrameworkId.VITE
        assert result.confidence == pytest.approx(0.15)
        assert result.evidence == ("Found running Vite process",)

    async def test_ties_keep_registration_order(self) -> None:
        manifest = {"scripts": {"dev": "x", "build": "y"}}
        result = await detect_framework(manifest)
        # nextjs and vite both score dev + build; nextjs is registered first.
        assert result.framework == FrameworkId.NEXTJS

    async def test_custom_weights(self) -> None:
        weights = DetectionWeights(primary_dependency=100)
        result = await detect_framework({"dependencies": {"react-scripts": "5"}}, weights=weights)
        assert result.confidence == 1.0

    async def test_to_dict(self) -> None:
        result = await detect_framework({"dependencies": {"next": "14"}})
        assert result.to_dict() == {
            "framework": "nextjs",
            "framework_name": "Next.js",
            "confidence": 0.3,
            "evidence": ["Found dependency: next"],
        }


class TestProcessCheck:
    async def test_empty_listing_is_not_running(self) -> None:
        async def run_command(command: str) -> CommandResult:
            return CommandResult(stdout="  \n", stderr="", exit_code=0)

        assert await is_process_running(run_command, "vite") is False

    async def test_raising_runner_is_not_running(self) -> None:
        async def run_command(command: str) -> CommandResult:
            raise RuntimeError("boom")

        assert await is_process_running(run_command, "vite") is False

    async def test_listing_excludes_grep_itself(self) -> None:
        seen: list[str] = []

        async def run_command(command: str) -> CommandResult:
            seen.append(command)
            return CommandResult(stdout="", stderr="", exit_code=1)

        await is_process_running(run_command, "nextjs")
        assert seen == ["ps aux | grep -v grep | grep -i nextjs"]


class TestDetectPackageManager:
    async def test_defaults_to_npm(self) -> None:
        assert (await detect_package_manager()).name == "npm"
        assert (await detect_package_manager(_files())).name == "npm"

    async def test_yarn_lock(self) -> None:
        assert (await detect_package_manager(_files("yarn.lock"))).name == "yarn"

    async def test_first_registered_lock_wins(self) -> None:
        pm = await detect_package_manager(_files("pnpm-lock.yaml", "package-lock.json"))
        assert pm.name == "npm"

    async def test_raising_check_defaults_to_npm(self) -> None:
        assert (await detect_package_manager(_raising_file_exists)).name == "npm"


class TestExtractPackage:
    def test_scoped_package_keeps_scope(self) -> None:
        msg = "Module not found: Can't resolve '@scope/pkg/sub'"
        assert extract_package_from_import_error(msg, "nextjs") == "@scope/pkg"

    def test_relative_import_is_skipped(self) -> None:
        msg = "Module not found: Can't resolve './local'"
        assert extract_package_from_import_error(msg, "nextjs") is None

    def test_subpath_import(self) -> None:
        msg = 'Failed to resolve import "lodash/fp" from "src/main.ts"'
        assert extract_package_from_import_error(msg, "vite") == "lodash"

    def test_no_match(self) -> None:
        assert extract_package_from_import_error("all good", "vite") is None

    def test_unknown_framework(self) -> None:
        msg = "Module not found: Can't resolve 'axios'"
        assert extract_package_from_import_error(msg, "ember") is None


class TestLookupHelpers:
    def test_restart_command(self) -> None:
        assert get_restart_command("cra") == "npm start"
        assert get_restart_command("unknown") == "npm run dev"

    def test_log_file_paths(self) -> None:
        assert get_log_file_paths("vite") == ["/tmp/vite-dev.log", "/tmp/vite.log"]
        assert get_log_file_paths("unknown") == ["/tmp/dev.log"]
