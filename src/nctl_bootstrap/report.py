"""JSON and markdown renderings of a bootstrap run."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from nctl_bootstrap.bootstrapper import BootstrapReport

REPORT_JSON = "BOOTSTRAP_REPORT.json"
REPORT_MD = "BOOTSTRAP_REPORT.md"


def report_to_dict(report: BootstrapReport) -> dict[str, Any]:
    return {
        "root_dir": str(report.root_dir),
        "status": report.status,
        "branch": report.branch,
        "override_branch": report.override_branch,
        "clones": [
            {
                "name": clone.name,
                "destination": str(clone.destination),
                "remote_url": clone.remote_url,
                "branch": clone.branch,
                "cloned": clone.cloned,
            }
            for clone in report.clones
        ],
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "returncode": step.returncode,
                "detail": step.detail,
            }
            for step in report.steps
        ],
    }


def write_report(report: BootstrapReport, out_dir: Path) -> dict[str, str]:
    """Write BOOTSTRAP_REPORT.json and BOOTSTRAP_REPORT.md into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)
    data = report_to_dict(report)

    json_path = out_dir / REPORT_JSON
    md_path = out_dir / REPORT_MD
    json_path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    md_path.write_text(render_markdown_report(data), encoding="utf-8")

    return {
        "json": str(json_path),
        "markdown": str(md_path),
    }


def render_markdown_report(data: dict[str, Any]) -> str:
    lines: list[str] = [
        "# BOOTSTRAP_REPORT",
        "",
        f"- status: {data['status']}",
        f"- root_dir: {data['root_dir']}",
        f"- branch: {data['branch'] or 'unresolved'}",
        f"- override_branch: {data['override_branch'] or 'unset'}",
        "",
        "## Repositories",
        "",
    ]

    if data["clones"]:
        for clone in data["clones"]:
            action = "cloned" if clone["cloned"] else "already present"
            pinned = f" @ {clone['branch']}" if clone["branch"] else ""
            lines.append(f"- {clone['name']}{pinned}: {action} ({clone['destination']})")
    else:
        lines.append("- none")

    lines.extend(["", "## Steps", ""])
    for step in data["steps"]:
        code = "" if step["returncode"] is None else f" (exit {step['returncode']})"
        lines.append(f"- {step['name']}: {step['status']}{code}")

    lines.append("")
    return "\n".join(lines)
