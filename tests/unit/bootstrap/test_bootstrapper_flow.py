"""Fail-fast ordering and working-directory scoping of the bootstrap run."""

from __future__ import annotations

from pathlib import Path

import pytest

from nctl_bootstrap.bootstrapper import STEP_NAMES, run_bootstrap
from nctl_bootstrap.clone import CloneOutcome
from nctl_bootstrap.errors import (
    BootstrapError,
    BuildError,
    CloneError,
    EnvironmentLoadError,
    ExternalCommandError,
    FileReadError,
)
from nctl_bootstrap.exec import ExecResult


class _Recorder:
    """Stubs every external collaborator and records call order and cwd."""

    def __init__(self, root: Path, fail_at: str | None = None, error: BootstrapError | None = None):
        self.root = root
        self.fail_at = fail_at
        self.error = error
        self.calls: list[tuple[str, Path]] = []

    def _enter(self, name: str) -> None:
        self.calls.append((name, Path.cwd()))
        if name == self.fail_at:
            assert self.error is not None
            raise self.error

    def load_environment(self, root_dir, settings, base_env=None):
        self._enter("load_environment")
        return {
            "NCTL": str(self.root / "utils" / "nctl"),
            "NCTL_CASPER_CLIENT_HOME": str(self.root / "client"),
            "NCTL_CASPER_NODE_LAUNCHER_HOME": str(self.root / "launcher"),
            "DRONE_BRANCH": "some-feature",
        }

    def select_client_branch(self, nctl_home, override_branch=None, settings=None):
        self._enter("select_client_branch")
        return "dev"

    def ensure_repository_cloned(self, destination, remote_url, branch=None, *, name=None, cwd=None, env=None):
        step = "clone_client" if destination.name == "client" else "clone_launcher"
        self._enter(step)
        return CloneOutcome(name=name or "", destination=destination, remote_url=remote_url, branch=branch, cloned=True)

    def run_build(self, config, *, cwd=None):
        self._enter("build")
        return ExecResult(argv=("nctl-compile",), cwd=Path.cwd(), returncode=0, stdout="", stderr="")

    def report_cache_stats(self, config, *, cwd=None):
        self._enter("cache_stats")
        return ExecResult(argv=("cachepot", "--show-stats"), cwd=Path.cwd(), returncode=0, stdout="", stderr="")

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for attr in (
            "load_environment",
            "select_client_branch",
            "ensure_repository_cloned",
            "run_build",
            "report_cache_stats",
        ):
            monkeypatch.setattr(f"nctl_bootstrap.bootstrapper.{attr}", getattr(self, attr))


def test_steps_run_in_order_and_cwd_is_scoped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "root"
    root.mkdir()
    caller = tmp_path / "caller"
    caller.mkdir()
    monkeypatch.chdir(caller)
    recorder = _Recorder(root)
    recorder.install(monkeypatch)

    report = run_bootstrap(root)

    assert [name for name, _ in recorder.calls] == list(STEP_NAMES)
    cwd_by_step = dict(recorder.calls)
    for name in ("load_environment", "select_client_branch", "clone_client", "clone_launcher"):
        assert cwd_by_step[name] == root.resolve()
    assert cwd_by_step["build"] == caller.resolve()
    assert cwd_by_step["cache_stats"] == caller.resolve()
    assert Path.cwd() == caller.resolve()

    assert report.status == "passed"
    assert report.branch == "dev"
    assert report.override_branch == "some-feature"
    assert [s.status for s in report.steps] == ["passed"] * len(STEP_NAMES)


@pytest.mark.parametrize(
    ("fail_at", "error"),
    [
        ("load_environment", EnvironmentLoadError("activation failed", returncode=7)),
        ("select_client_branch", FileReadError("unable to read marker file")),
        ("clone_client", CloneError("clone failed", returncode=128)),
        ("clone_launcher", CloneError("clone failed", returncode=128)),
        ("build", BuildError("build failed", returncode=101)),
        ("cache_stats", ExternalCommandError("cache stats failed", returncode=2)),
    ],
)
def test_first_failure_stops_the_run(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fail_at: str,
    error: BootstrapError,
) -> None:
    root = tmp_path / "root"
    root.mkdir()
    monkeypatch.chdir(tmp_path)
    recorder = _Recorder(root, fail_at=fail_at, error=error)
    recorder.install(monkeypatch)

    with pytest.raises(type(error)) as excinfo:
        run_bootstrap(root)

    failed_index = STEP_NAMES.index(fail_at)
    assert [name for name, _ in recorder.calls] == list(STEP_NAMES[: failed_index + 1])
    assert excinfo.value.returncode == error.returncode
    assert Path.cwd() == tmp_path.resolve()

    report = excinfo.value.report
    assert report is not None
    assert report.status == "failed"
    statuses = {step.name: step.status for step in report.steps}
    assert statuses[fail_at] == "failed"
    for name in STEP_NAMES[failed_index + 1 :]:
        assert statuses[name] == "skipped"
    for name in STEP_NAMES[:failed_index]:
        assert statuses[name] == "passed"


def test_missing_home_variable_fails_environment_step(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "root"
    root.mkdir()
    recorder = _Recorder(root)
    recorder.install(monkeypatch)
    monkeypatch.setattr(
        "nctl_bootstrap.bootstrapper.load_environment",
        lambda root_dir, settings, base_env=None: {"NCTL_CASPER_CLIENT_HOME": "/c"},
    )

    with pytest.raises(EnvironmentLoadError, match="NCTL_CASPER_NODE_LAUNCHER_HOME") as excinfo:
        run_bootstrap(root)

    assert excinfo.value.report.step("load_environment").status == "failed"
    assert recorder.calls == []
