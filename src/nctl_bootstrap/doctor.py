"""Preflight checks for a bootstrap run.

Reports on the tools and files a run depends on without activating the
environment or touching the network.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Literal

from nctl_bootstrap.config import BootstrapSettings

DOCTOR_JSON = "DOCTOR_REPORT.json"
DOCTOR_MD = "DOCTOR_REPORT.md"


@dataclass
class CheckItem:
    """Individual check result."""

    id: str
    status: Literal["pass", "fail", "warn"]
    message: str
    remediation: list[str] = field(default_factory=list)


@dataclass
class DoctorReport:
    """Complete doctor check report."""

    root_dir: str
    status: Literal["passed", "failed"] = "passed"
    checks: list[CheckItem] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "passed": sum(1 for c in self.checks if c.status == "pass"),
            "failed": sum(1 for c in self.checks if c.status == "fail"),
            "warnings": sum(1 for c in self.checks if c.status == "warn"),
        }


def _check_executable(check_id: str, name: str, *, required: bool, remediation: list[str]) -> CheckItem:
    found = shutil.which(name)
    if found:
        return CheckItem(id=check_id, status="pass", message=f"{name} found at {found}")
    return CheckItem(
        id=check_id,
        status="fail" if required else "warn",
        message=f"{name} not found on PATH",
        remediation=remediation,
    )


def _check_activate(root_dir: Path, settings: BootstrapSettings) -> CheckItem:
    path = settings.activate_path(root_dir)
    if path.is_file():
        return CheckItem(id="activate_script", status="pass", message=f"Activation artifact present: {path}")
    return CheckItem(
        id="activate_script",
        status="fail",
        message=f"Activation artifact missing: {path}",
        remediation=[
            "Run from a casper-node checkout or pass --root",
            "Set activate_script in the config file if the artifact lives elsewhere",
        ],
    )


def _check_marker_file(root_dir: Path, settings: BootstrapSettings) -> CheckItem:
    # NCTL is only known after activation; check the default location.
    path = root_dir / settings.nctl_home_default / settings.marker_file
    if path.is_file():
        return CheckItem(id="marker_file", status="pass", message=f"Marker file present: {path}")
    return CheckItem(
        id="marker_file",
        status="warn",
        message=f"Marker file not at default location: {path} (activation may relocate NCTL)",
    )


def run_doctor(root_dir: Path, settings: BootstrapSettings | None = None) -> DoctorReport:
    """Run all preflight checks for ``root_dir``."""
    settings = settings or BootstrapSettings()
    cache_tool = settings.cache_stats_command[0]

    report = DoctorReport(root_dir=str(root_dir))
    report.checks = [
        _check_executable("git", "git", required=True, remediation=["Install git"]),
        _check_executable("bash", "bash", required=True, remediation=["Install bash"]),
        _check_executable(
            "cache_tool",
            cache_tool,
            required=False,
            remediation=[f"Install {cache_tool} or the cache stats step will fail the run"],
        ),
        _check_activate(root_dir, settings),
        _check_marker_file(root_dir, settings),
    ]
    report.status = "failed" if report.counts["failed"] else "passed"
    return report


def write_doctor_report(report: DoctorReport, out_dir: Path) -> dict[str, str]:
    """Write DOCTOR_REPORT.json and DOCTOR_REPORT.md into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)

    json_path = out_dir / DOCTOR_JSON
    payload = asdict(report)
    payload["counts"] = report.counts
    json_path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")

    md_path = out_dir / DOCTOR_MD
    lines = [
        "# nctl-bootstrap Doctor Report",
        "",
        f"**Status**: {report.status.upper()}",
        "",
        f"- Root: `{report.root_dir}`",
        f"- Passed: {report.counts['passed']}",
        f"- Failed: {report.counts['failed']}",
        f"- Warnings: {report.counts['warnings']}",
        "",
        "## Checks",
        "",
    ]
    for check in report.checks:
        lines.append(f"### [{check.status}] {check.id}")
        lines.append("")
        lines.append(check.message)
        lines.append("")
        if check.remediation:
            lines.extend(f"- {step}" for step in check.remediation)
            lines.append("")
    md_path.write_text("\n".join(lines), encoding="utf-8")

    return {
        "json": str(json_path),
        "markdown": str(md_path),
    }
