"""Idempotent repository checkout."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from nctl_bootstrap.errors import CloneError
from nctl_bootstrap.exec import ExecError, run_git

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloneOutcome:
    """What happened for one repository."""

    name: str
    destination: Path
    remote_url: str
    branch: str | None
    cloned: bool


def clone_argv(remote_url: str, destination: Path, branch: str | None = None) -> list[str]:
    """Build the git clone arguments, pinning ``branch`` when given."""
    args = ["clone"]
    if branch:
        args.extend(["-b", branch])
    args.extend([remote_url, str(destination)])
    return args


def ensure_repository_cloned(
    destination: Path,
    remote_url: str,
    branch: str | None = None,
    *,
    name: str | None = None,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CloneOutcome:
    """Clone ``remote_url`` into ``destination`` unless it is already a directory.

    An existing directory is left untouched whatever it contains.

    Raises:
        CloneError: If git exits non-zero (unreachable remote, unknown branch,
            destination not creatable)
    """
    label = name or destination.name
    if destination.is_dir():
        logger.info("%s already present at %s; skipping clone", label, destination)
        return CloneOutcome(
            name=label,
            destination=destination,
            remote_url=remote_url,
            branch=branch,
            cloned=False,
        )

    work_dir = cwd or Path.cwd()
    try:
        run_git(clone_argv(remote_url, destination, branch), cwd=work_dir, env=env, capture=False)
    except ExecError as exc:
        raise CloneError(
            f"clone of {label} from {remote_url} failed ({exc.result.returncode})",
            returncode=exc.result.returncode,
            result=exc.result,
        ) from exc

    return CloneOutcome(
        name=label,
        destination=destination,
        remote_url=remote_url,
        branch=branch,
        cloned=True,
    )
