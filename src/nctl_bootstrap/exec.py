"""Command runners for bootstrap steps."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Status a POSIX shell reports for an unknown command.
COMMAND_NOT_FOUND = 127
# A shell reports death by signal N as 128 + N.
SIGNAL_STATUS_BASE = 128


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


class ExecError(RuntimeError):
    """Raised when a command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = shlex.join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        message = f"command failed ({result.returncode}): {rendered}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.result = result


def _shell_status(returncode: int) -> int:
    # subprocess reports a signal kill as -N.
    return SIGNAL_STATUS_BASE - returncode if returncode < 0 else returncode


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
    check: bool = True,
) -> ExecResult:
    """Run command and return structured result.

    With ``capture=False`` the child inherits stdout/stderr so its output
    reaches the invoking terminal; the result then holds empty strings.
    """
    logger.debug("exec: %s (cwd=%s)", shlex.join(argv), cwd)
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=capture,
            text=True,
            errors="surrogateescape",
            check=False,
        )
    except FileNotFoundError as exc:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=COMMAND_NOT_FOUND,
            stdout="",
            stderr=f"{argv[0]}: command not found ({exc.strerror})",
        )
    else:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=_shell_status(completed.returncode),
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result


def run_git(
    args: list[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
    check: bool = True,
) -> ExecResult:
    """Run git command from ``cwd``."""
    return run_command(["git", *args], cwd=cwd, env=env, capture=capture, check=check)


def run_in_activated_shell(
    activate_script: Path,
    command: str,
    *,
    cwd: Path,
    source_dir: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = False,
    check: bool = True,
) -> ExecResult:
    """Source the activation script in bash, then run ``command``.

    The script is sourced from ``source_dir`` (default ``cwd``) and the
    command then runs from ``cwd``. Activation output is sent to stderr so
    it never mixes with the command's stdout.
    """
    script = (
        "set -e\n"
        'pushd "$2" >/dev/null\n'
        'source "$1" 1>&2\n'
        "popd >/dev/null\n"
        f"{command}\n"
    )
    return run_command(
        ["bash", "-c", script, "nctl-bootstrap", str(activate_script), str(source_dir or cwd)],
        cwd=cwd,
        env=env,
        capture=capture,
        check=check,
    )
