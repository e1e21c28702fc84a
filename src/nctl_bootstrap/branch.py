"""Client branch selection driven by a marker string."""

from __future__ import annotations

import logging
from pathlib import Path

from nctl_bootstrap.config import BootstrapSettings
from nctl_bootstrap.errors import FileReadError

logger = logging.getLogger(__name__)


def marker_present(path: Path, marker: str) -> bool:
    """Return True when ``marker`` occurs anywhere in the file at ``path``."""
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise FileReadError(f"unable to read marker file {path}: {exc.strerror or exc}") from exc
    return marker.encode("utf-8") in content


def select_client_branch(
    nctl_home: Path,
    override_branch: str | None = None,
    settings: BootstrapSettings | None = None,
) -> str:
    """Pick the client branch from the marker in the client compile helper.

    ``override_branch`` is accepted but does not influence the outcome: the
    marker search always decides between the two configured branches.
    """
    settings = settings or BootstrapSettings()
    candidate = override_branch or settings.default_branch
    path = nctl_home / settings.marker_file

    if marker_present(path, settings.marker):
        branch = settings.branch_marker_present
    else:
        branch = settings.branch_marker_absent

    if candidate != branch:
        logger.debug("ignoring override branch %r; marker selects %r", candidate, branch)
    logger.info(
        "Marker %r %s in %s; client branch %s",
        settings.marker,
        "found" if branch == settings.branch_marker_present else "absent",
        path,
        branch,
    )
    return branch
