"""Command resolution for framework actions.

Maps a (framework, action, package manager) triple onto the concrete shell
command to run in the sandbox, with deterministic fallbacks to the npm form.
"""

from frameworks.registry import (
    DEFAULT_PACKAGE_MANAGER,
    PACKAGE_MANAGERS,
    get_framework,
    get_package_manager,
)
from models.schemas import FrameworkId
from sandbox.security import quote_arg

DEFAULT_HEALTH_PORT = 3000


def get_command_variants(framework_id: str | FrameworkId, action: str) -> tuple[str, ...]:
    """Return every command variant for ``action`` (empty if unknown)."""
    profile = get_framework(framework_id)
    if profile is None:
        return ()
    return profile.commands.for_action(action)


def get_command(
    framework_id: str | FrameworkId,
    action: str,
    package_manager: str = DEFAULT_PACKAGE_MANAGER,
) -> str | None:
    """Resolve the command for an action under a package manager.

    Picks the first variant that starts with the package manager's name or
    run prefix. An unrecognised package manager, or one without a matching
    variant, gets the first (npm-style) variant.

    Returns:
        The command string, or None if the framework or action is unknown
        or has no variants.

    Examples:
        >>> get_command("nextjs", "dev", "yarn")
        'yarn dev'
        >>> get_command("nextjs", "test", "unknownpm")
        'npm test'
    """
    variants = get_command_variants(framework_id, action)
    if not variants:
        return None

    pm = get_package_manager(package_manager)
    if pm is None:
        return variants[0]

    for variant in variants:
        if variant.startswith(pm.name) or variant.startswith(pm.run_command):
            return variant
    return variants[0]


def build_command(
    framework_id: str | FrameworkId,
    action: str,
    package_manager: str = DEFAULT_PACKAGE_MANAGER,
    args: list[str] | None = None,
) -> str | None:
    """Resolve a command and append extra arguments, space-joined."""
    base_command = get_command(framework_id, action, package_manager)
    if base_command is None:
        return None
    if not args:
        return base_command
    return f"{base_command} {' '.join(args)}"


def get_install_command(
    packages: list[str],
    package_manager: str = DEFAULT_PACKAGE_MANAGER,
    is_dev: bool = False,
) -> str:
    """Return the command installing ``packages`` (bare install if empty)."""
    pm = get_package_manager(package_manager) or PACKAGE_MANAGERS[DEFAULT_PACKAGE_MANAGER]

    if not packages:
        return pm.install_command

    packages_str = " ".join(packages)
    if pm.name == "npm":
        dev_flag = "--save-dev" if is_dev else ""
        return " ".join(filter(None, ["npm install", dev_flag, packages_str]))

    dev_flag = "--dev" if is_dev else ""
    return " ".join(filter(None, [f"{pm.name} add", dev_flag, packages_str]))


def get_uninstall_command(
    packages: list[str],
    package_manager: str = DEFAULT_PACKAGE_MANAGER,
) -> str:
    """Return the command removing ``packages`` (empty string if none)."""
    if not packages:
        return ""

    packages_str = " ".join(packages)
    if package_manager in ("yarn", "pnpm"):
        return f"{package_manager} remove {packages_str}"
    return f"npm uninstall {packages_str}"


def get_process_kill_commands(
    framework_id: str | FrameworkId,
    port: int | None = None,
) -> list[str]:
    """Return the commands that stop the framework's dev server.

    Specific kills come first (dev command, framework process name, port
    via lsof and via fuser), generic Node catch-alls last. Port kills end
    in ``|| true`` so an idle port is not a failure.
    """
    commands: list[str] = []

    profile = get_framework(framework_id)
    if profile is not None:
        target_port = port or profile.dev_port
        commands.append(f'pkill -f "{profile.dev_command}"')
        commands.append(f'pkill -f "{profile.process_name}"')
        commands.append(f"lsof -ti:{target_port} | xargs kill -9 || true")
        commands.append(f"fuser -k {target_port}/tcp || true")

    commands.append('pkill -f "node.*dev"')
    commands.append('pkill -f "node.*start"')
    return commands


def get_health_check_command(
    framework_id: str | FrameworkId,
    port: int | None = None,
) -> str:
    """Return a command that exits 0 iff the dev server answers HTTP."""
    profile = get_framework(framework_id)
    target_port = port or (profile.dev_port if profile else DEFAULT_HEALTH_PORT)
    return f"curl -f http://localhost:{target_port} > /dev/null 2>&1"


def get_log_tail_command(framework_id: str | FrameworkId, lines: int = 50) -> list[str]:
    """Return one tail command per log file of the framework."""
    profile = get_framework(framework_id)
    log_files = profile.log_files if profile else ("/tmp/dev.log",)
    return [
        f"tail -n {int(lines)} {quote_arg(log_file)} 2>/dev/null"
        f' || echo "Log file {log_file} not found"'
        for log_file in log_files
    ]
