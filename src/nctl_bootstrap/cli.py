"""nctl-bootstrap CLI - prepare the NCTL workspace and run the build."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.markup import escape

from nctl_bootstrap import __version__
from nctl_bootstrap.bootstrapper import plan_bootstrap, run_bootstrap
from nctl_bootstrap.config import BootstrapSettings, load_settings
from nctl_bootstrap.doctor import run_doctor, write_doctor_report
from nctl_bootstrap.errors import BootstrapError
from nctl_bootstrap.paths import resolve_explicit_root, resolve_root_dir
from nctl_bootstrap.report import write_report
from nctl_bootstrap.ui import announce, configure_logging, err_console, resolve_log_level

logger = logging.getLogger(__name__)

cli = typer.Typer(
    name="nctl-bootstrap",
    help="Prepare the NCTL build workspace (client + launcher checkouts) and run nctl-compile.",
    no_args_is_help=True,
)

ROOT_OPTION = typer.Option(
    None,
    "--root",
    help="Repository root (defaults to --anchor resolution, then the current directory).",
)
ANCHOR_OPTION = typer.Option(
    None,
    "--anchor",
    help="File one directory below the root, e.g. ci/nctl_compile.sh.",
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="YAML settings file (defaults to <root>/nctl_bootstrap.yaml when present).",
)
LOG_LEVEL_OPTION = typer.Option(
    None,
    "--log-level",
    help="DEBUG, INFO, WARNING or ERROR (env: NCTL_BOOTSTRAP_LOG_LEVEL).",
)


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback(invoke_without_command=True)
def _cli_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show nctl-bootstrap version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Prepare the NCTL build workspace and run nctl-compile."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _setup(log_level: str | None) -> None:
    try:
        configure_logging(resolve_log_level(log_level))
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc


def _resolve_root(root: Path | None, anchor: Path | None) -> Path:
    if root is not None:
        return resolve_explicit_root(root)
    if anchor is not None:
        return resolve_root_dir(anchor)
    return resolve_explicit_root(Path.cwd())


def _fail(exc: BootstrapError) -> typer.Exit:
    err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
    if exc.result is not None:
        detail = exc.result.stderr.strip()
        if detail and detail not in str(exc):
            err_console.print(detail, markup=False, highlight=False, soft_wrap=True)
    return typer.Exit(exc.returncode)


def _load(root: Path | None, anchor: Path | None, config: Path | None) -> tuple[Path, BootstrapSettings]:
    root_dir = _resolve_root(root, anchor)
    return root_dir, load_settings(root_dir, config)


@cli.command("run")
def run_cmd(
    root: Path | None = ROOT_OPTION,
    anchor: Path | None = ANCHOR_OPTION,
    config: Path | None = CONFIG_OPTION,
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        help="Write BOOTSTRAP_REPORT.json/.md into this directory.",
    ),
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Activate, select the client branch, clone missing repos, build, show cache stats.

    Exit code is that of the first failing step, 0 on success.
    """
    _setup(log_level)
    report = None
    try:
        root_dir, settings = _load(root, anchor, config)
        report = run_bootstrap(root_dir, settings=settings)
    except BootstrapError as exc:
        if out is not None and exc.report is not None:
            write_report(exc.report, out)
        raise _fail(exc) from exc

    if out is not None:
        paths = write_report(report, out)
        logger.info("Report written to %s", paths["json"])


@cli.command("plan")
def plan_cmd(
    root: Path | None = ROOT_OPTION,
    anchor: Path | None = ANCHOR_OPTION,
    config: Path | None = CONFIG_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Show the branch decision and which repositories a run would clone."""
    _setup(log_level)
    try:
        root_dir, settings = _load(root, anchor, config)
        plan = plan_bootstrap(root_dir, settings=settings)
    except BootstrapError as exc:
        raise _fail(exc) from exc

    announce(f"root_dir={plan.root_dir}")
    announce(f"override_branch={plan.override_branch}")
    announce(f"branch={plan.branch}")
    for repo in plan.repositories:
        if repo.present:
            action = "present"
        elif repo.branch:
            action = f"clone -b {repo.branch} {repo.remote_url}"
        else:
            action = f"clone {repo.remote_url}"
        announce(f"{repo.name}={repo.destination} ({action})")
    announce(f"pending_clones={len(plan.pending)}")


@cli.command("branch")
def branch_cmd(
    root: Path | None = ROOT_OPTION,
    anchor: Path | None = ANCHOR_OPTION,
    config: Path | None = CONFIG_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Print the client branch a run would check out."""
    _setup(log_level or "WARNING")
    try:
        root_dir, settings = _load(root, anchor, config)
        plan = plan_bootstrap(root_dir, settings=settings)
    except BootstrapError as exc:
        raise _fail(exc) from exc
    typer.echo(plan.branch)


@cli.command("doctor")
def doctor_cmd(
    root: Path | None = ROOT_OPTION,
    anchor: Path | None = ANCHOR_OPTION,
    config: Path | None = CONFIG_OPTION,
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        help="Write DOCTOR_REPORT.json/.md into this directory.",
    ),
) -> None:
    """Run preflight checks.

    Exit codes:
      0 - All checks passed
      2 - One or more checks failed
      1 - Root or config could not be loaded
    """
    try:
        root_dir, settings = _load(root, anchor, config)
    except BootstrapError as exc:
        raise _fail(exc) from exc

    report = run_doctor(root_dir, settings)
    symbols = {"pass": "[green]PASS[/green]", "fail": "[red]FAIL[/red]", "warn": "[yellow]WARN[/yellow]"}
    for check in report.checks:
        err_console.print(f"{symbols[check.status]} {check.id}: {check.message}", highlight=False, soft_wrap=True)

    if out is not None:
        paths = write_doctor_report(report, out)
        typer.echo(f"Reports written to: {paths['json']}, {paths['markdown']}")

    typer.echo(f"Status: {report.status.upper()}")
    if report.status == "failed":
        raise typer.Exit(code=2)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
