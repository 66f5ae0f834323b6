"""Sandbox access for the dev-session orchestrator.

This module provides the SandboxProvider contract, the failure-tolerant
capability adapter built on it, and the Docker-backed production provider.
"""

from sandbox.base import CommandResult, NoActiveSandboxError, SandboxProvider
from sandbox.capabilities import SandboxCapabilities
from sandbox.docker_sandbox import DockerSandboxProvider
from sandbox.security import quote_arg, sanitize_output, validate_command

__all__ = [
    "CommandResult",
    "DockerSandboxProvider",
    "NoActiveSandboxError",
    "SandboxCapabilities",
    "SandboxProvider",
    "quote_arg",
    "sanitize_output",
    "validate_command",
]
