"""Security helpers for sandbox command execution.

This module validates the shell commands the orchestrator sends into the
sandbox, quotes arguments interpolated into them and cleans up the output
that comes back.
"""

import re
import shlex

# Programs the orchestrator itself invokes. In strict mode every segment of a
# pipeline or command list must start with one of these.
ALLOWED_COMMANDS: list[str] = [
    "npm",
    "npx",
    "yarn",
    "pnpm",
    "node",
    "serve",
    "sh",
    "cat",
    "test",
    "tail",
    "head",
    "grep",
    "ls",
    "rm",
    "printf",
    "echo",
    "ps",
    "pkill",
    "kill",
    "xargs",
    "lsof",
    "fuser",
    "curl",
    "true",
]

# Command substitution is never emitted by the orchestrator.
BLOCKED_SEQUENCES: list[str] = [
    "$(",
    "`",
]

# Deleting these would destroy the sandbox rather than a build artifact.
PROTECTED_PATHS: list[str] = [
    "/",
    "/*",
    "~",
    "/workspace",
    "/etc",
    "/usr",
    "/bin",
    "/root",
]

# Operators separating independent commands in a shell line.
_SEGMENT_OPERATORS: frozenset[str] = frozenset({"|", "||", "&&", ";", "&"})

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def quote_arg(value: str) -> str:
    """Quote a single argument for safe interpolation into a shell command."""
    return shlex.quote(value)


def _segments(command: str) -> list[list[str]]:
    """Split a shell line into the token lists of the commands it chains.

    Operators inside quoted arguments do not split.
    """
    lexer = shlex.shlex(command, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    try:
        tokens = list(lexer)
    except ValueError:
        tokens = command.strip().split()

    segments: list[list[str]] = [[]]
    for token in tokens:
        if token in _SEGMENT_OPERATORS:
            segments.append([])
        else:
            segments[-1].append(token)
    return [seg for seg in segments if seg]


def _expandable_text(command: str) -> str:
    """Return the parts of a shell line the shell would still expand.

    Single-quoted text and backslash-escaped characters are dropped.
    Double-quoted text is kept, since substitutions run inside it. This
    follows ``shlex.quote`` output such as ``'can'"'"'t'`` across its
    quote boundaries.
    """
    kept: list[str] = []
    quote: str | None = None
    escaped = False
    for ch in command:
        if escaped:
            escaped = False
        elif quote == "'":
            if ch == "'":
                quote = None
        elif ch == "\\":
            escaped = True
        elif quote == '"':
            if ch == '"':
                quote = None
            else:
                kept.append(ch)
        elif ch in ("'", '"'):
            quote = ch
        else:
            kept.append(ch)
    return "".join(kept)


def validate_command(
    command: str, *, unrestricted: bool = False
) -> tuple[bool, str]:
    """Validate a shell command before execution in the sandbox.

    Two modes are supported:
    - unrestricted=True: allow any non-empty command without a null byte
    - unrestricted=False: every chained command must start with an allowlisted
      program, command substitution is rejected and ``rm`` may not target a
      protected path

    Args:
        command: The shell command string to validate.
        unrestricted: If True, skip the allowlist checks.

    Returns:
        A tuple of (is_valid, error_message).
        If valid, error_message is an empty string.

    Examples:
        >>> validate_command("npm run dev")
        (True, "")
        >>> validate_command("lsof -ti:3000 | xargs kill -9 || true")
        (True, "")
        >>> validate_command("rm -rf /")
        (False, "Protected path cannot be removed: /")
    """
    if not command or not command.strip():
        return False, "Command cannot be empty"

    if "\x00" in command:
        return False, "Command contains null byte"

    if unrestricted:
        return True, ""

    unquoted = _expandable_text(command)
    for seq in BLOCKED_SEQUENCES:
        if seq in unquoted:
            return False, f"Blocked sequence detected: {seq}"

    for parts in _segments(command):
        base_cmd = parts[0]
        if base_cmd not in ALLOWED_COMMANDS:
            return False, f"Command not in allowlist: {base_cmd}"
        if base_cmd == "rm":
            for part in parts[1:]:
                if part.startswith("-") or part in (">", ">>"):
                    continue
                if part.rstrip("/") in PROTECTED_PATHS or part in PROTECTED_PATHS:
                    return False, f"Protected path cannot be removed: {part}"

    return True, ""


def sanitize_output(output: str, max_length: int = 50000) -> str:
    """Sanitize command output for classification and transmission.

    Strips ANSI colour sequences emitted by dev servers and truncates
    excessively long output.

    Args:
        output: The raw command output string.
        max_length: Maximum allowed length before truncation.

    Returns:
        The sanitized output string.
    """
    if not output:
        return ""

    output = _ANSI_ESCAPE.sub("", output)

    if len(output) > max_length:
        truncated_chars = len(output) - max_length
        output = (
            output[:max_length]
            + f"\n... [truncated, {truncated_chars} chars omitted]"
        )

    return output
