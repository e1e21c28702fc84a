from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

console = Console()
err_console = Console(stderr=True)

LOG_LEVEL_ENV = "NCTL_BOOTSTRAP_LOG_LEVEL"
QUIET_ENV = "NCTL_BOOTSTRAP_QUIET"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def quiet_enabled() -> bool:
    return os.getenv(QUIET_ENV, "0") == "1"


def resolve_log_level(cli_level: str | None = None) -> str:
    level = (cli_level or os.getenv(LOG_LEVEL_ENV, "") or "INFO").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unsupported log level: {level}. Expected one of: {', '.join(LOG_LEVELS)}.")
    return level


def configure_logging(level: str) -> None:
    """Route all package logging through a rich handler on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )


def step_header(name: str, detail: str = "") -> None:
    if quiet_enabled():
        return
    line = Text(f"==> {name}", style="bold bright_cyan")
    if detail:
        line.append(f"  {detail}", style="dim")
    console.print(line)


def announce(message: str) -> None:
    """Plain status line; printed even in quiet mode."""
    console.print(message, markup=False, highlight=False, soft_wrap=True)
