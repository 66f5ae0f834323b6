"""Tests for frameworks/commands.py -- command resolution per package manager."""

import pytest

from frameworks.commands import (
    build_command,
    get_command,
    get_health_check_command,
    get_install_command,
    get_log_tail_command,
    get_process_kill_commands,
    get_uninstall_command,
)


class TestGetCommand:
    def test_yarn_variant(self) -> None:
        assert get_command("nextjs", "dev", "yarn") == "yarn dev"

    def test_unknown_package_manager_falls_back_to_first(self) -> None:
        assert get_command("nextjs", "test", "unknownpm") == "npm test"

    @pytest.mark.parametrize(
        ("framework", "action", "pm", "expected"),
        [
            ("vite", "build", "npm", "npm run build"),
            ("vite", "build", "pnpm", "pnpm build"),
            ("vite", "start", "yarn", "yarn preview"),
            ("cra", "dev", "yarn", "yarn start"),
            ("nextjs", "typecheck", "npm", "npx tsc --noEmit"),
            ("nextjs", "typecheck", "pnpm", "pnpm tsc --noEmit"),
        ],
    )
    def test_variants(self, framework: str, action: str, pm: str, expected: str) -> None:
        assert get_command(framework, action, pm) == expected

    def test_missing_variant_falls_back_to_first(self) -> None:
        # CRA has no pnpm variants.
        assert get_command("cra", "dev", "pnpm") == "npm start"

    def test_unknown_framework_or_action(self) -> None:
        assert get_command("ember", "dev") is None
        assert get_command("vite", "deploy") is None


class TestBuildCommand:
    def test_appends_args(self) -> None:
        assert build_command("vite", "build", "npm", ["--mode", "staging"]) == (
            "npm run build --mode staging"
        )

    def test_without_args(self) -> None:
        assert build_command("vite", "lint", "yarn") == "yarn lint"

    def test_unknown_action(self) -> None:
        assert build_command("vite", "deploy", "npm", ["--prod"]) is None


class TestInstallCommands:
    def test_bare_install(self) -> None:
        assert get_install_command([], "pnpm") == "pnpm install"

    def test_npm_dev_install(self) -> None:
        assert get_install_command(["vitest", "jsdom"], "npm", is_dev=True) == (
            "npm install --save-dev vitest jsdom"
        )

    def test_yarn_add(self) -> None:
        assert get_install_command(["axios"], "yarn") == "yarn add axios"
        assert get_install_command(["axios"], "yarn", is_dev=True) == "yarn add --dev axios"

    def test_unknown_package_manager_uses_npm(self) -> None:
        assert get_install_command(["axios"], "bun") == "npm install axios"

    def test_uninstall(self) -> None:
        assert get_uninstall_command(["axios"], "pnpm") == "pnpm remove axios"
        assert get_uninstall_command(["axios"]) == "npm uninstall axios"
        assert get_uninstall_command([]) == ""


class TestKillCommands:
    def test_specific_before_generic(self) -> None:
        assert get_process_kill_commands("vite") == [
            'pkill -f "npm run dev"',
            'pkill -f "vite"',
            "lsof -ti:5173 | xargs kill -9 || true",
            "fuser -k 5173/tcp || true",
            'pkill -f "node.*dev"',
            'pkill -f "node.*start"',
        ]

    def test_port_override(self) -> None:
        commands = get_process_kill_commands("nextjs", port=4000)
        assert "lsof -ti:4000 | xargs kill -9 || true" in commands

    def test_unknown_framework_gets_generic_only(self) -> None:
        assert get_process_kill_commands("ember") == [
            'pkill -f "node.*dev"',
            'pkill -f "node.*start"',
        ]


class TestProbeCommands:
    def test_health_check(self) -> None:
        assert get_health_check_command("vite") == (
            "curl -f http://localhost:5173 > /dev/null 2>&1"
        )
        assert get_health_check_command("ember") == (
            "curl -f http://localhost:3000 > /dev/null 2>&1"
        )

    def test_log_tail_per_file(self) -> None:
        commands = get_log_tail_command("cra", lines=20)
        assert commands == [
            "tail -n 20 /tmp/cra-dev.log 2>/dev/null || echo \"Log file /tmp/cra-dev.log not found\"",
            "tail -n 20 /tmp/react-scripts.log 2>/dev/null"
            " || echo \"Log file /tmp/react-scripts.log not found\"",
        ]

    def test_log_tail_unknown_framework(self) -> None:
        assert get_log_tail_command("ember") == [
            "tail -n 50 /tmp/dev.log 2>/dev/null || echo \"Log file /tmp/dev.log not found\""
        ]
