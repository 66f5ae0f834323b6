"""Framework and package-manager registries.

Static catalogues of the frameworks the orchestrator can drive and of the
package managers it can drive them with. Profiles are immutable and looked
up by id; unknown ids resolve to ``None`` and callers fall back to defaults.
"""

import re
from dataclasses import dataclass

from models.schemas import FrameworkId


@dataclass(frozen=True)
class CommandSet:
    """Shell command variants per action, one per package manager.

    The npm form is always listed first so it doubles as the default.
    """

    install: tuple[str, ...]
    dev: tuple[str, ...]
    build: tuple[str, ...]
    start: tuple[str, ...]
    test: tuple[str, ...] = ()
    lint: tuple[str, ...] = ()
    typecheck: tuple[str, ...] = ()
    clean: tuple[str, ...] = ()

    def for_action(self, action: str) -> tuple[str, ...]:
        """Return the variants for ``action`` (empty for unknown actions)."""
        if action not in _ACTIONS:
            return ()
        return getattr(self, action)


_ACTIONS: frozenset[str] = frozenset(
    {"install", "dev", "build", "start", "test", "lint", "typecheck", "clean"}
)


@dataclass(frozen=True)
class ErrorPatterns:
    """Regexes matching the framework's error output.

    ``import_error`` must capture the unresolved import path in group 1.
    """

    import_error: re.Pattern[str]
    syntax_error: re.Pattern[str]
    type_error: re.Pattern[str]
    build_error: re.Pattern[str]


@dataclass(frozen=True)
class FrameworkProfile:
    """Everything the orchestrator needs to know about one framework."""

    id: FrameworkId
    name: str
    commands: CommandSet
    dev_port: int
    log_files: tuple[str, ...]
    error_patterns: ErrorPatterns
    dependencies: tuple[str, ...] = ()
    dev_dependencies: tuple[str, ...] = ()
    config_files: tuple[str, ...] = ()

    @property
    def dev_command(self) -> str:
        return self.commands.dev[0]

    @property
    def build_command(self) -> str:
        return self.commands.build[0]

    @property
    def start_command(self) -> str:
        return self.commands.start[0]

    @property
    def test_command(self) -> str | None:
        return self.commands.test[0] if self.commands.test else None

    @property
    def dev_log_file(self) -> str:
        """File the dev server's output is redirected into."""
        return self.log_files[0]

    @property
    def process_name(self) -> str:
        """Display name lower-cased with non-letters stripped (``nextjs``)."""
        return re.sub(r"[^a-z]", "", self.name.lower())


@dataclass(frozen=True)
class PackageManagerProfile:
    """Lock file and command prefixes of one package manager."""

    name: str
    lock_file: str
    install_command: str
    run_command: str


# =============================================================================
# FRAMEWORKS
# =============================================================================

_MODULE_NOT_FOUND = re.compile(r"Module not found: Can't resolve '([^']+)'")
_SYNTAX_ERROR = re.compile(r"SyntaxError: (.+)")

FRAMEWORKS: dict[FrameworkId, FrameworkProfile] = {
    FrameworkId.NEXTJS: FrameworkProfile(
        id=FrameworkId.NEXTJS,
        name="Next.js",
        commands=CommandSet(
            install=("npm install", "yarn install", "pnpm install"),
            dev=("npm run dev", "yarn dev", "pnpm dev"),
            build=("npm run build", "yarn build", "pnpm build"),
            start=("npm start", "yarn start", "pnpm start"),
            test=("npm test", "yarn test", "pnpm test"),
            lint=("npm run lint", "yarn lint", "pnpm lint"),
            typecheck=("npx tsc --noEmit", "yarn tsc --noEmit", "pnpm tsc --noEmit"),
            clean=("rm -rf .next", "rm -rf node_modules/.cache"),
        ),
        dev_port=3000,
        log_files=(
            "/tmp/nextjs-dev.log",
            "/tmp/nextjs.log",
            "/tmp/next-dev.log",
            ".next/trace",
        ),
        error_patterns=ErrorPatterns(
            import_error=_MODULE_NOT_FOUND,
            syntax_error=_SYNTAX_ERROR,
            type_error=re.compile(r"Type error: (.+)"),
            build_error=re.compile(r"Failed to compile"),
        ),
        dependencies=("next", "react", "react-dom"),
        dev_dependencies=("@types/react", "@types/node"),
        config_files=("next.config.js", "next.config.ts", "next.config.mjs"),
    ),
    FrameworkId.VITE: FrameworkProfile(
        id=FrameworkId.VITE,
        name="Vite",
        commands=CommandSet(
            install=("npm install", "yarn install", "pnpm install"),
            dev=("npm run dev", "yarn dev", "pnpm dev"),
            build=("npm run build", "yarn build", "pnpm build"),
            start=("npm run preview", "yarn preview", "pnpm preview"),
            test=("npm test", "yarn test", "pnpm test"),
            lint=("npm run lint", "yarn lint", "pnpm lint"),
            typecheck=("npx tsc --noEmit", "yarn tsc --noEmit", "pnpm tsc --noEmit"),
            clean=("rm -rf dist", "rm -rf node_modules/.vite"),
        ),
        dev_port=5173,
        log_files=("/tmp/vite-dev.log", "/tmp/vite.log"),
        error_patterns=ErrorPatterns(
            import_error=re.compile(r'Failed to resolve import "([^"]+)"'),
            syntax_error=_SYNTAX_ERROR,
            type_error=re.compile(r"TS\d+: (.+)"),
            build_error=re.compile(r"Build failed with \d+ error"),
        ),
        dependencies=("vite",),
        dev_dependencies=("@vitejs/plugin-react", "@vitejs/plugin-react-swc"),
        config_files=("vite.config.js", "vite.config.ts", "vite.config.mjs"),
    ),
    FrameworkId.CRA: FrameworkProfile(
        id=FrameworkId.CRA,
        name="Create React App",
        commands=CommandSet(
            install=("npm install", "yarn install"),
            dev=("npm start", "yarn start"),
            build=("npm run build", "yarn build"),
            start=("npx serve -s build", "yarn global add serve && serve -s build"),
            test=("npm test", "yarn test"),
            lint=("npm run lint", "yarn lint"),
            typecheck=("npx tsc --noEmit", "yarn tsc --noEmit"),
            clean=("rm -rf build", "rm -rf node_modules/.cache"),
        ),
        dev_port=3000,
        log_files=("/tmp/cra-dev.log", "/tmp/react-scripts.log"),
        error_patterns=ErrorPatterns(
            import_error=_MODULE_NOT_FOUND,
            syntax_error=_SYNTAX_ERROR,
            type_error=re.compile(r"TypeScript error in (.+)"),
            build_error=re.compile(r"Failed to compile"),
        ),
        dependencies=("react-scripts",),
        dev_dependencies=(),
        config_files=("public/index.html", "src/index.js", "src/index.tsx"),
    ),
}


# =============================================================================
# PACKAGE MANAGERS
# =============================================================================

# Order matters: lock-file detection returns the first match.
PACKAGE_MANAGERS: dict[str, PackageManagerProfile] = {
    "npm": PackageManagerProfile(
        name="npm",
        lock_file="package-lock.json",
        install_command="npm install",
        run_command="npm run",
    ),
    "yarn": PackageManagerProfile(
        name="yarn",
        lock_file="yarn.lock",
        install_command="yarn install",
        run_command="yarn",
    ),
    "pnpm": PackageManagerProfile(
        name="pnpm",
        lock_file="pnpm-lock.yaml",
        install_command="pnpm install",
        run_command="pnpm",
    ),
}

DEFAULT_PACKAGE_MANAGER = "npm"


# =============================================================================
# LOOKUPS
# =============================================================================


def parse_framework_id(value: str | FrameworkId | None) -> FrameworkId | None:
    """Return the registered FrameworkId for ``value`` or None if unknown."""
    if value is None:
        return None
    try:
        return FrameworkId(value)
    except ValueError:
        return None


def get_framework(framework_id: str | FrameworkId | None) -> FrameworkProfile | None:
    """Look up a framework profile by id."""
    parsed = parse_framework_id(framework_id)
    if parsed is None:
        return None
    return FRAMEWORKS.get(parsed)


def list_frameworks() -> list[FrameworkProfile]:
    """Return all framework profiles in registration order."""
    return list(FRAMEWORKS.values())


def get_package_manager(name: str | None) -> PackageManagerProfile | None:
    """Look up a package manager profile by name."""
    if name is None:
        return None
    return PACKAGE_MANAGERS.get(name)


def list_package_managers() -> list[PackageManagerProfile]:
    """Return all package manager profiles in registration order."""
    return list(PACKAGE_MANAGERS.values())
