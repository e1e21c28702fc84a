"""Linear bootstrap run: activate, pick the client branch, clone, build, report cache stats.

Every step is fail-fast. The first ``BootstrapError`` stops the run, the
remaining steps are recorded as skipped, and the error propagates with the
partial report attached so callers can still render it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeVar

from nctl_bootstrap.activate import load_environment
from nctl_bootstrap.branch import select_client_branch
from nctl_bootstrap.build import report_cache_stats, run_build
from nctl_bootstrap.clone import CloneOutcome, ensure_repository_cloned
from nctl_bootstrap.config import BootstrapConfig, BootstrapSettings, RepositorySpec
from nctl_bootstrap.errors import BootstrapError
from nctl_bootstrap.paths import resolve_explicit_root, working_directory
from nctl_bootstrap.ui import announce, step_header

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

StepStatus = Literal["passed", "failed", "skipped"]

STEP_NAMES: tuple[str, ...] = (
    "load_environment",
    "select_client_branch",
    "clone_client",
    "clone_launcher",
    "build",
    "cache_stats",
)


@dataclass(frozen=True)
class StepRecord:
    """Outcome of one bootstrap step."""

    name: str
    status: StepStatus
    returncode: int | None = None
    detail: str = ""


@dataclass
class BootstrapReport:
    """Accumulated result of a bootstrap run."""

    root_dir: Path
    status: Literal["passed", "failed"] = "passed"
    branch: str | None = None
    override_branch: str | None = None
    clones: list[CloneOutcome] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)

    def step(self, name: str) -> StepRecord | None:
        for record in self.steps:
            if record.name == name:
                return record
        return None


@dataclass(frozen=True)
class PlannedClone:
    """A repository checkout as it would be handled by a run."""

    name: str
    destination: Path
    remote_url: str
    branch: str | None
    present: bool


@dataclass(frozen=True)
class BootstrapPlan:
    """Dry view of a run: branch decision and pending clones."""

    root_dir: Path
    branch: str
    override_branch: str
    repositories: tuple[PlannedClone, ...]

    @property
    def pending(self) -> tuple[PlannedClone, ...]:
        return tuple(repo for repo in self.repositories if not repo.present)


def _run_step(report: BootstrapReport, name: str, fn: Callable[[], _T], detail: str = "") -> _T:
    step_header(name, detail)
    try:
        value = fn()
    except BootstrapError as exc:
        report.steps.append(StepRecord(name=name, status="failed", returncode=exc.returncode, detail=str(exc)))
        raise
    report.steps.append(StepRecord(name=name, status="passed", returncode=0, detail=detail))
    return value


def _mark_skipped(report: BootstrapReport) -> None:
    done = {record.name for record in report.steps}
    for name in STEP_NAMES:
        if name not in done:
            report.steps.append(StepRecord(name=name, status="skipped"))


def _activate(
    root_dir: Path,
    settings: BootstrapSettings,
    base_env: Mapping[str, str] | None,
) -> BootstrapConfig:
    environment = load_environment(root_dir, settings, base_env)
    return BootstrapConfig.from_environment(root_dir, environment, settings)


def _clone(config: BootstrapConfig, spec: RepositorySpec, destination: Path, branch: str | None) -> CloneOutcome:
    if branch and not destination.is_dir():
        announce(f"Checking out {branch} of {spec.name}...")
    return ensure_repository_cloned(
        destination,
        spec.remote_url,
        branch,
        name=spec.name,
        cwd=config.root_dir,
        env=config.environment,
    )


def run_bootstrap(
    root_dir: Path,
    *,
    settings: BootstrapSettings | None = None,
    base_env: Mapping[str, str] | None = None,
) -> BootstrapReport:
    """Prepare the NCTL workspace under ``root_dir`` and run the build.

    Environment activation and repository checks happen inside ``root_dir``;
    the previous working directory is restored before the build runs, and
    on every failure path.

    Raises:
        BootstrapError: From the first failing step, with ``report`` attached
    """
    root_dir = resolve_explicit_root(root_dir)
    settings = settings or BootstrapSettings()
    report = BootstrapReport(root_dir=root_dir)

    try:
        with working_directory(root_dir):
            config = _run_step(
                report,
                "load_environment",
                lambda: _activate(root_dir, settings, base_env),
                str(settings.activate_path(root_dir)),
            )
            report.override_branch = config.override_branch

            branch = _run_step(
                report,
                "select_client_branch",
                lambda: select_client_branch(config.nctl_home, config.override_branch, settings),
                str(config.marker_path),
            )
            report.branch = branch

            report.clones.append(
                _run_step(
                    report,
                    "clone_client",
                    lambda: _clone(config, settings.client, config.client_home, branch),
                    str(config.client_home),
                )
            )
            report.clones.append(
                _run_step(
                    report,
                    "clone_launcher",
                    lambda: _clone(config, settings.launcher, config.launcher_home, None),
                    str(config.launcher_home),
                )
            )

        _run_step(report, "build", lambda: run_build(config), settings.build_command)
        _run_step(
            report,
            "cache_stats",
            lambda: report_cache_stats(config),
            " ".join(settings.cache_stats_command),
        )
    except BootstrapError as exc:
        report.status = "failed"
        _mark_skipped(report)
        exc.report = report
        failed = next(r.name for r in report.steps if r.status == "failed")
        logger.error("bootstrap failed at %s (exit %d)", failed, exc.returncode)
        raise

    logger.info("bootstrap finished: branch=%s cloned=%d", branch, sum(c.cloned for c in report.clones))
    return report


def plan_bootstrap(
    root_dir: Path,
    *,
    settings: BootstrapSettings | None = None,
    base_env: Mapping[str, str] | None = None,
) -> BootstrapPlan:
    """Resolve the branch and which repositories would be cloned, without side effects on disk."""
    root_dir = resolve_explicit_root(root_dir)
    settings = settings or BootstrapSettings()
    with working_directory(root_dir):
        config = _activate(root_dir, settings, base_env)
        branch = select_client_branch(config.nctl_home, config.override_branch, settings)
        repositories = (
            PlannedClone(
                name=settings.client.name,
                destination=config.client_home,
                remote_url=settings.client.remote_url,
                branch=branch,
                present=config.client_home.is_dir(),
            ),
            PlannedClone(
                name=settings.launcher.name,
                destination=config.launcher_home,
                remote_url=settings.launcher.remote_url,
                branch=None,
                present=config.launcher_home.is_dir(),
            ),
        )
    return BootstrapPlan(
        root_dir=root_dir,
        branch=branch,
        override_branch=config.override_branch,
        repositories=repositories,
    )
