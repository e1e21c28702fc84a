"""Error taxonomy for the bootstrap run.

Every error carries the exit status the CLI should terminate with, so the
first failing step decides the overall status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nctl_bootstrap.exec import ExecResult


class BootstrapError(RuntimeError):
    """Base class for fatal bootstrap failures."""

    def __init__(self, message: str, *, returncode: int = 1, result: ExecResult | None = None):
        super().__init__(message)
        self.returncode = returncode if returncode != 0 else 1
        self.result = result
        self.report = None


class PathResolutionError(BootstrapError):
    """Raised when the repository root cannot be resolved."""


class ConfigError(BootstrapError):
    """Raised when the bootstrap config file is malformed or invalid."""


class EnvironmentLoadError(BootstrapError):
    """Raised when the activation artifact is missing, fails, or leaves required variables unset."""


class FileReadError(BootstrapError):
    """Raised when the marker file cannot be read."""


class CloneError(BootstrapError):
    """Raised when cloning a repository fails."""


class BuildError(BootstrapError):
    """Raised when the build command exits non-zero."""


class ExternalCommandError(BootstrapError):
    """Raised when an auxiliary external command (cache stats) exits non-zero."""
