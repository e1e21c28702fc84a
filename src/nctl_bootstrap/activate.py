"""Load the environment exported by the NCTL activation artifact."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from nctl_bootstrap.config import BootstrapSettings
from nctl_bootstrap.errors import EnvironmentLoadError
from nctl_bootstrap.exec import run_in_activated_shell

logger = logging.getLogger(__name__)


def parse_env_dump(raw: str) -> dict[str, str]:
    """Parse ``env -0`` output into a mapping."""
    environment: dict[str, str] = {}
    for record in raw.split("\0"):
        if not record:
            continue
        key, sep, value = record.partition("=")
        if not sep or not key:
            continue
        environment[key] = value
    return environment


def load_environment(
    root_dir: Path,
    settings: BootstrapSettings,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Source the activation artifact and return the resulting environment.

    Args:
        root_dir: Repository root; the artifact is sourced from inside it
        settings: Locates the artifact relative to ``root_dir``
        base_env: Environment to start from (defaults to the current process)

    Returns:
        Full environment after activation

    Raises:
        EnvironmentLoadError: If the artifact is missing or exits non-zero
    """
    activate = settings.activate_path(root_dir)
    if not activate.is_file():
        raise EnvironmentLoadError(f"activation artifact not found: {activate}")

    env = dict(os.environ if base_env is None else base_env)
    logger.info("Activating environment from %s", activate)
    result = run_in_activated_shell(
        activate,
        "env -0",
        cwd=root_dir,
        env=env,
        capture=True,
        check=False,
    )
    if result.returncode != 0:
        detail = result.stderr.strip()
        message = f"activation failed ({result.returncode}): {activate}"
        if detail:
            message = f"{message}\n{detail}"
        raise EnvironmentLoadError(message, returncode=result.returncode, result=result)

    if result.stderr.strip():
        logger.debug("activation output:\n%s", result.stderr.rstrip())

    environment = parse_env_dump(result.stdout)
    added = sorted(set(environment) - set(env))
    logger.debug("activation defined: %s", ", ".join(added) or "(nothing new)")
    return environment
