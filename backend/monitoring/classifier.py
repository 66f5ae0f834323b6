"""Classification of dev-server log lines.

Each line is matched against an ordered list of rules; the first rule that
matches decides the category and later rules are not consulted. Lines that
match nothing are dropped.
"""

import re

from frameworks.detector import extract_package_from_import_error
from frameworks.registry import FrameworkProfile
from models.schemas import ErrorKind, ErrorRecord

IMPORT_ERROR_MARKERS: tuple[str, ...] = (
    "failed to resolve",
    "module not found",
    "cannot resolve",
)
SYNTAX_ERROR_MARKERS: tuple[str, ...] = ("syntaxerror", "syntax error")
TYPE_ERROR_MARKERS: tuple[str, ...] = ("type error",)
BUILD_ERROR_MARKERS: tuple[str, ...] = (
    "failed to compile",
    "build failed",
    "compilation failed",
)
WARNING_MARKERS: tuple[str, ...] = ("warning", "warn")
SUCCESS_MARKERS: tuple[str, ...] = (
    "compiled successfully",
    "ready in",
    "local:",
    "network:",
)

# TypeScript diagnostics, e.g. "error TS2307: Cannot find module".
TS_DIAGNOSTIC = re.compile(r"\bts\d+")

ERROR_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.NPM_MISSING,
        ErrorKind.SYNTAX_ERROR,
        ErrorKind.TYPE_ERROR,
        ErrorKind.BUILD_ERROR,
        ErrorKind.RUNTIME_ERROR,
    }
)


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def classify_line(line: str, profile: FrameworkProfile) -> ErrorRecord | None:
    """Classify one log line for ``profile``.

    Rules, first match wins:
      1. unresolved import -> ``npm-missing`` keyed by package (relative
         imports are consumed and dropped)
      2. syntax error -> ``syntax-error``
      3. type error or TS diagnostic -> ``type-error``
      4. compile/build failure -> ``build-error``
      5. warning -> ``warning``
      6. ready/compiled banner -> ``success``

    Returns:
        An ErrorRecord, or None when the line is blank or matches no rule.
    """
    text = line.strip()
    if not text:
        return None
    lower = text.lower()
    framework = str(profile.id)

    if _contains_any(lower, IMPORT_ERROR_MARKERS):
        package = extract_package_from_import_error(text, profile.id)
        if package is None:
            return None
        return ErrorRecord(
            type=ErrorKind.NPM_MISSING,
            package=package,
            message=f'Failed to resolve import "{package}"',
            file="Unknown",
            framework=framework,
        )

    if _contains_any(lower, SYNTAX_ERROR_MARKERS):
        kind = ErrorKind.SYNTAX_ERROR
    elif _contains_any(lower, TYPE_ERROR_MARKERS) or TS_DIAGNOSTIC.search(lower):
        kind = ErrorKind.TYPE_ERROR
    elif _contains_any(lower, BUILD_ERROR_MARKERS):
        kind = ErrorKind.BUILD_ERROR
    elif _contains_any(lower, WARNING_MARKERS):
        kind = ErrorKind.WARNING
    elif _contains_any(lower, SUCCESS_MARKERS):
        kind = ErrorKind.SUCCESS
    else:
        return None

    return ErrorRecord(type=kind, message=text, framework=framework)


def is_error(record: ErrorRecord) -> bool:
    """True for records that belong in the error list."""
    return record.type in ERROR_KINDS
