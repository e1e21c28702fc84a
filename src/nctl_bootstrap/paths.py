"""Root directory resolution and scoped working-directory changes."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from nctl_bootstrap.errors import PathResolutionError

logger = logging.getLogger(__name__)


def resolve_root_dir(anchor: Path) -> Path:
    """Resolve the repository root as the parent of the anchor's directory.

    ``ci/nctl_compile.sh`` inside a checkout resolves to the checkout itself.
    """
    try:
        resolved = anchor.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathResolutionError(f"unable to resolve anchor path {anchor}: {exc}") from exc

    containing = resolved.parent
    root = containing.parent
    if root == containing:
        raise PathResolutionError(f"anchor {resolved} has no parent above {containing}")
    if not root.is_dir():
        raise PathResolutionError(f"resolved root is not a directory: {root}")
    return root


def resolve_explicit_root(root: Path) -> Path:
    """Canonicalize a root directory given directly by the caller."""
    try:
        resolved = root.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathResolutionError(f"unable to resolve root directory {root}: {exc}") from exc
    if not resolved.is_dir():
        raise PathResolutionError(f"root is not a directory: {resolved}")
    return resolved


@contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    """Change into ``path`` and restore the previous directory on exit."""
    previous = Path.cwd()
    os.chdir(path)
    logger.debug("entered %s", path)
    try:
        yield path
    finally:
        os.chdir(previous)
        logger.debug("restored %s", previous)
