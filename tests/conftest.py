"""Pytest configuration and fixtures for nctl-bootstrap tests."""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

MARKER_PRESENT_SCRIPT = """#!/usr/bin/env bash
cargo build --release --features casper-mainnet
"""
MARKER_ABSENT_SCRIPT = """#!/usr/bin/env bash
cargo build --release
"""


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)
    if not cov_enabled:
        return

    coverage_files = list(Path.cwd().glob(".coverage*"))
    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'nctl_bootstrap' (the package) not 'src/nctl_bootstrap'.",
            returncode=1
        )


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def make_remote(base: Path, name: str, branches: list[str]) -> Path:
    """Create a bare repo whose HEAD is the first branch in ``branches``."""
    work = base / f"{name}-src"
    work.mkdir(parents=True)
    git(work, "init")
    git(work, "config", "user.email", "test@example.com")
    git(work, "config", "user.name", "Test User")
    (work / "README.md").write_text(f"# {name}\n", encoding="utf-8")
    git(work, "add", "README.md")
    git(work, "commit", "-m", "initial")
    git(work, "branch", "-M", branches[0])
    for branch in branches[1:]:
        git(work, "branch", branch)

    remote = base / f"{name}.git"
    subprocess.run(["git", "clone", "--bare", str(work), str(remote)], check=True, capture_output=True)
    return remote


@dataclass
class NctlWorkspace:
    """A fake casper-node checkout plus local remotes and stub tools."""

    base: Path
    root: Path
    client_home: Path
    launcher_home: Path
    client_remote: Path
    launcher_remote: Path
    events: Path
    bin_dir: Path
    env: dict[str, str]

    @property
    def marker_file(self) -> Path:
        return self.root / "utils" / "nctl" / "sh" / "assets" / "compile_client.sh"

    def set_marker(self, present: bool) -> None:
        self.marker_file.write_text(MARKER_PRESENT_SCRIPT if present else MARKER_ABSENT_SCRIPT, encoding="utf-8")

    def write_activate(self, body: str) -> None:
        (self.root / "utils" / "nctl" / "activate").write_text(body, encoding="utf-8")

    def set_build_status(self, status: int) -> None:
        self.write_activate(default_activate(self.base, self.events, status))

    def event_lines(self) -> list[str]:
        if not self.events.exists():
            return []
        return self.events.read_text(encoding="utf-8").splitlines()

    def settings_yaml(self) -> str:
        return (
            "repositories:\n"
            f"  client:\n    remote_url: {self.client_remote}\n"
            f"  launcher:\n    remote_url: {self.launcher_remote}\n"
        )


def default_activate(workspace_dir: Path, events: Path, build_status: int = 0) -> str:
    return (
        'export NCTL="$( cd "$( dirname "${BASH_SOURCE[0]}" )" && pwd )"\n'
        f'export NCTL_CASPER_CLIENT_HOME="{workspace_dir / "homes" / "casper-client-rs"}"\n'
        f'export NCTL_CASPER_NODE_LAUNCHER_HOME="{workspace_dir / "homes" / "casper-node-launcher"}"\n'
        "nctl-compile() {\n"
        f'    echo "build $(pwd)" >> "{events}"\n'
        f"    return {build_status}\n"
        "}\n"
    )


@pytest.fixture
def nctl_workspace(tmp_path: Path) -> NctlWorkspace:
    root = tmp_path / "casper-node"
    (root / "ci").mkdir(parents=True)
    (root / "ci" / "nctl_compile.sh").write_text("#!/usr/bin/env bash\n", encoding="utf-8")
    (root / "utils" / "nctl" / "sh" / "assets").mkdir(parents=True)

    events = tmp_path / "events.log"
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    cachepot = bin_dir / "cachepot"
    cachepot.write_text(
        "#!/usr/bin/env bash\n"
        f'echo "cachepot $*" >> "{events}"\n'
        'echo "Compile requests 0"\n',
        encoding="utf-8",
    )
    cachepot.chmod(0o755)

    remotes = tmp_path / "remotes"
    workspace = NctlWorkspace(
        base=tmp_path,
        root=root,
        client_home=tmp_path / "homes" / "casper-client-rs",
        launcher_home=tmp_path / "homes" / "casper-node-launcher",
        client_remote=make_remote(remotes, "casper-client-rs", ["dev", "feat-fast-sync"]),
        launcher_remote=make_remote(remotes, "casper-node-launcher", ["main"]),
        events=events,
        bin_dir=bin_dir,
        env={**os.environ, "PATH": f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"},
    )
    workspace.write_activate(default_activate(tmp_path, events))
    workspace.set_marker(True)
    (root / "nctl_bootstrap.yaml").write_text(workspace.settings_yaml(), encoding="utf-8")
    return workspace
