"""Build and compiler-cache steps."""

from __future__ import annotations

import logging
from pathlib import Path

from nctl_bootstrap.config import BootstrapConfig
from nctl_bootstrap.errors import BuildError, ExternalCommandError
from nctl_bootstrap.exec import ExecError, ExecResult, run_command, run_in_activated_shell

logger = logging.getLogger(__name__)


def run_build(config: BootstrapConfig, *, cwd: Path | None = None) -> ExecResult:
    """Run the build command inside the activated environment.

    The build command is a shell function defined by the activation
    artifact, so it runs in a shell that sources the artifact first. The
    artifact is sourced from the root, as it was during activation, so
    anything it derives from its working directory matches the clones.
    """
    work_dir = cwd or Path.cwd()
    logger.info("Running build: %s", config.settings.build_command)
    try:
        return run_in_activated_shell(
            config.activate_script,
            config.settings.build_command,
            cwd=work_dir,
            source_dir=config.root_dir,
            env=config.environment,
        )
    except ExecError as exc:
        raise BuildError(
            f"build failed ({exc.result.returncode}): {config.settings.build_command}",
            returncode=exc.result.returncode,
            result=exc.result,
        ) from exc


def report_cache_stats(config: BootstrapConfig, *, cwd: Path | None = None) -> ExecResult:
    """Print compiler-cache statistics; output is informational only."""
    argv = list(config.settings.cache_stats_command)
    work_dir = cwd or Path.cwd()
    try:
        return run_command(argv, cwd=work_dir, env=config.environment, capture=False)
    except ExecError as exc:
        raise ExternalCommandError(
            f"cache stats failed ({exc.result.returncode}): {' '.join(argv)}",
            returncode=exc.result.returncode,
            result=exc.result,
        ) from exc
