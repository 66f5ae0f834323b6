"""Command-line entry point for the dev-session orchestrator.

Binds a running Docker container as the sandbox and invokes one orchestrator
operation, printing the result as JSON.

Usage:
    python main.py <container> detect
    python main.py <container> restart --force
    python main.py <container> op install --packages react-router-dom --dev
    python main.py <container> op logs --lines 200
    python main.py <container> report "Cannot read properties of undefined" --file src/App.tsx --line 12
"""

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog
from pydantic import ValidationError

from config import settings
from models.schemas import ErrorKind, OperationArgs, OperationName
from orchestrator import DevSessionOrchestrator, get_orchestrator
from sandbox import DockerSandboxProvider, NoActiveSandboxError

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect, run and monitor the frontend dev server in a sandbox container",
    )
    parser.add_argument("container", help="ID or name of the sandbox container")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("detect", help="Detect the project's framework")
    subparsers.add_parser("info", help="Show framework details and operation state")

    restart = subparsers.add_parser("restart", help="Restart the dev server")
    restart.add_argument("--force", action="store_true", help="Ignore the restart cooldown")

    op = subparsers.add_parser("op", help="Run a framework operation")
    op.add_argument("name", choices=[str(name) for name in OperationName])
    op.add_argument("--packages", nargs="*", default=[], help="Packages to install")
    op.add_argument("--dev", action="store_true", help="Install as dev dependencies")
    op.add_argument("--lines", type=int, default=50, help="Log lines to tail")
    op.add_argument(
        "--extra",
        nargs=argparse.REMAINDER,
        default=[],
        help="Arguments appended to the resolved command",
    )
    op.add_argument("--force", action="store_true", help="Ignore in-progress and cooldown gates")

    subparsers.add_parser("monitor", help="Classify recent dev-server log lines")
    subparsers.add_parser("check", help="Check for errors in recent log lines")

    report = subparsers.add_parser("report", help="Report an error seen outside the logs")
    report.add_argument("message", help="The error message")
    report.add_argument(
        "--type",
        choices=[str(kind) for kind in ErrorKind],
        default=str(ErrorKind.RUNTIME_ERROR),
    )
    report.add_argument("--file", default=None)
    report.add_argument("--line", type=int, default=None)
    report.add_argument("--column", type=int, default=None)
    report.add_argument("--stack", default=None)

    subparsers.add_parser("clear", help="Clear the error caches")
    return parser


async def run(orchestrator: DevSessionOrchestrator, args: argparse.Namespace) -> dict[str, Any]:
    """Invoke the orchestrator operation selected by ``args``."""
    if args.command == "detect":
        detection = await orchestrator.detect_framework()
        return {"success": True, **detection.to_dict()}
    if args.command == "info":
        result = await orchestrator.framework_info()
    elif args.command == "restart":
        result = await orchestrator.restart_session(force=args.force)
    elif args.command == "op":
        result = await orchestrator.run_operation(
            args.name,
            packages=args.packages,
            args=OperationArgs(dev=args.dev, lines=args.lines, extra=args.extra),
            force=args.force,
        )
    elif args.command == "monitor":
        result = await orchestrator.monitor_logs()
    elif args.command == "check":
        result = await orchestrator.check_errors()
    elif args.command == "report":
        result = await orchestrator.report_error(
            {
                "error": args.message,
                "type": args.type,
                "file": args.file,
                "line": args.line,
                "column": args.column,
                "stack": args.stack,
            }
        )
    else:
        result = await orchestrator.clear_error_cache()
    return result.model_dump(mode="json", by_alias=True)


def _emit(payload: dict[str, Any]) -> int:
    print(json.dumps(payload, indent=2))
    return 0 if payload.get("success") else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    provider = DockerSandboxProvider.from_settings(args.container)
    if not provider.is_docker_available():
        return _emit({"success": False, "error": "Docker daemon is not reachable"})
    if not asyncio.run(provider.is_running()):
        return _emit({"success": False, "error": f"Container {args.container} is not running"})

    orchestrator = get_orchestrator()
    orchestrator.bind_sandbox(provider)
    logger.info(
        "cli_command_started",
        command=args.command,
        container=args.container[:12],
        log_level=settings.log_level,
    )

    try:
        payload = asyncio.run(run(orchestrator, args))
    except (NoActiveSandboxError, ValidationError) as e:
        payload = {"success": False, "error": str(e)}
    return _emit(payload)


if __name__ == "__main__":
    sys.exit(main())
