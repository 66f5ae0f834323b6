"""Framework and package-manager detection.

Scores every registered framework against the signals a project exposes
(package manifest, config files on disk, running processes) and picks the
best match. Scores are additive weighted heuristics: manifest contents are
authoritative, process detection is weak corroboration, and any missing
capability simply contributes nothing.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from frameworks.registry import (
    DEFAULT_PACKAGE_MANAGER,
    FRAMEWORKS,
    PACKAGE_MANAGERS,
    FrameworkProfile,
    PackageManagerProfile,
    get_framework,
    list_frameworks,
    list_package_managers,
)
from models.schemas import FrameworkId
from sandbox.base import CommandResult
from sandbox.security import quote_arg

if TYPE_CHECKING:
    from config import Settings

logger = structlog.get_logger(__name__)

FileExists = Callable[[str], Awaitable[bool]]
RunCommand = Callable[[str], Awaitable[CommandResult]]

FALLBACK_EVIDENCE = "No clear framework detected, defaulting to {name}"


@dataclass(frozen=True)
class DetectionWeights:
    """Score contributed by each detection signal."""

    primary_dependency: int = 30
    secondary_dependency: int = 20
    dev_script: int = 15
    build_script: int = 10
    config_file: int = 25
    running_process: int = 15

    @classmethod
    def from_settings(cls, settings: "Settings") -> "DetectionWeights":
        return cls(
            primary_dependency=settings.score_primary_dependency,
            secondary_dependency=settings.score_secondary_dependency,
            dev_script=settings.score_dev_script,
            build_script=settings.score_build_script,
            config_file=settings.score_config_file,
            running_process=settings.score_running_process,
        )


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detection call.

    Confidence is ``min(score / 100, 1)`` for the winning framework, or 0
    for the fallback. Evidence lists every signal that contributed.
    """

    framework: FrameworkId
    confidence: float
    profile: FrameworkProfile
    evidence: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": str(self.framework),
            "framework_name": self.profile.name,
            "confidence": round(self.confidence, 2),
            "evidence": list(self.evidence),
        }


async def _file_exists_safe(file_exists: FileExists, path: str) -> bool:
    try:
        return bool(await file_exists(path))
    except Exception as e:
        logger.debug("file_check_failed", path=path, error=str(e))
        return False


async def is_process_running(run_command: RunCommand, process_name: str) -> bool:
    """Return True if a process matching ``process_name`` is listed."""
    try:
        result = await run_command(
            f"ps aux | grep -v grep | grep -i {quote_arg(process_name)}"
        )
    except Exception as e:
        logger.debug("process_check_failed", process=process_name, error=str(e))
        return False
    return result.exit_code == 0 and bool(result.stdout.strip())


async def _score_framework(
    profile: FrameworkProfile,
    manifest: dict[str, Any] | None,
    file_exists: FileExists | None,
    run_command: RunCommand | None,
    weights: DetectionWeights,
) -> tuple[int, list[str]]:
    score = 0
    evidence: list[str] = []

    if manifest:
        deps: dict[str, Any] = {}
        deps.update(manifest.get("dependencies") or {})
        deps.update(manifest.get("devDependencies") or {})

        for dep in profile.dependencies:
            if deps.get(dep):
                score += weights.primary_dependency
                evidence.append(f"Found dependency: {dep}")

        for dep in profile.dev_dependencies:
            if deps.get(dep):
                score += weights.secondary_dependency
                evidence.append(f"Found dev dependency: {dep}")

        scripts = manifest.get("scripts") or {}
        if scripts.get("dev") and "dev" in profile.dev_command:
            score += weights.dev_script
            evidence.append("Has dev script")
        if scripts.get("build") and "build" in profile.build_command:
            score += weights.build_script
            evidence.append("Has build script")

    if file_exists is not None:
        for config_file in profile.config_files:
            if await _file_exists_safe(file_exists, config_file):
                score += weights.config_file
                evidence.append(f"Found config file: {config_file}")

    if run_command is not None:
        if await is_process_running(run_command, profile.process_name):
            score += weights.running_process
            evidence.append(f"Found running {profile.name} process")

    return score, evidence


async def detect_framework(
    manifest: dict[str, Any] | None = None,
    file_exists: FileExists | None = None,
    run_command: RunCommand | None = None,
    *,
    weights: DetectionWeights | None = None,
    default_framework: str | FrameworkId = FrameworkId.VITE,
) -> DetectionResult:
    """Detect which registered framework the project uses.

    Every input is optional; a missing capability skips the signals that
    depend on it, and a failing capability counts as a negative signal.
    This function never raises for capability failures.

    Args:
        manifest: Parsed package.json, if available.
        file_exists: Awaitable file-existence check relative to the workspace.
        run_command: Awaitable command runner used for process detection.
        weights: Score per signal (default: DetectionWeights()).
        default_framework: Framework returned when nothing scores.

    Returns:
        The best-scoring DetectionResult, or the fallback with confidence 0.
    """
    weights = weights or DetectionWeights()
    if manifest is not None and not isinstance(manifest, dict):
        manifest = None

    scored: list[tuple[FrameworkProfile, int, list[str]]] = []
    for profile in list_frameworks():
        score, evidence = await _score_framework(
            profile, manifest, file_exists, run_command, weights
        )
        scored.append((profile, score, evidence))

    # sorted() is stable, so ties keep registration order.
    scored = sorted(scored, key=lambda item: item[1], reverse=True)
    best_profile, best_score, best_evidence = scored[0]

    if best_score <= 0:
        fallback = get_framework(default_framework) or FRAMEWORKS[FrameworkId.VITE]
        logger.info("framework_detection_fallback", framework=str(fallback.id))
        return DetectionResult(
            framework=fallback.id,
            confidence=0.0,
            profile=fallback,
            evidence=(FALLBACK_EVIDENCE.format(name=fallback.name),),
        )

    confidence = min(best_score / 100, 1.0)
    logger.info(
        "framework_detected",
        framework=str(best_profile.id),
        score=best_score,
        confidence=confidence,
    )
    return DetectionResult(
        framework=best_profile.id,
        confidence=confidence,
        profile=best_profile,
        evidence=tuple(best_evidence),
    )


async def detect_package_manager(
    file_exists: FileExists | None = None,
) -> PackageManagerProfile:
    """Detect the package manager from lock files.

    Returns the first registered package manager whose lock file exists,
    or npm when none does (or no file check is available).
    """
    if file_exists is not None:
        for pm in list_package_managers():
            if await _file_exists_safe(file_exists, pm.lock_file):
                return pm

    return PACKAGE_MANAGERS[DEFAULT_PACKAGE_MANAGER]


def extract_package_from_import_error(
    error_message: str, framework_id: str | FrameworkId
) -> str | None:
    """Extract the missing package name from an unresolved-import message.

    Relative imports yield None. Scoped packages keep their scope
    (``@scope/pkg/sub`` -> ``@scope/pkg``); others keep the first segment
    (``lodash/fp`` -> ``lodash``).
    """
    profile = get_framework(framework_id)
    if profile is None:
        return None

    match = profile.error_patterns.import_error.search(error_message)
    if not match:
        return None

    import_path = match.group(1)
    if import_path.startswith("."):
        return None

    parts = import_path.split("/")
    if import_path.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else import_path
    return parts[0]


def get_restart_command(framework_id: str | FrameworkId) -> str:
    """Return the framework's dev command (``npm run dev`` if unknown)."""
    profile = get_framework(framework_id)
    if profile is None:
        return "npm run dev"
    return profile.dev_command


def get_log_file_paths(framework_id: str | FrameworkId) -> list[str]:
    """Return the framework's log files (``/tmp/dev.log`` if unknown)."""
    profile = get_framework(framework_id)
    if profile is None:
        return ["/tmp/dev.log"]
    return list(profile.log_files)
