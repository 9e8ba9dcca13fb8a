"""
Shared terminal output for operation reports.

Every attempted unit gets exactly one line; a summary line closes the
report.
"""

from __future__ import annotations

import click

from agent_rig.core.engine.diff import RigDiff
from agent_rig.core.engine.orchestrator import OperationReport, Phase
from agent_rig.core.models.result import OperationResult, OperationStatus

_STATUS_STYLE = {
    OperationStatus.APPLIED: ("OK", "green"),
    OperationStatus.DISABLED: ("OFF", "yellow"),
    OperationStatus.SKIPPED: ("SKIP", "white"),
    OperationStatus.FAILED: ("FAIL", "red"),
}

_PHASE_TITLES = {
    Phase.REGISTRIES: "Marketplaces",
    Phase.COMPONENTS: "Plugins",
    Phase.CONFLICTS: "Conflicts",
    Phase.SERVICES: "MCP Servers",
    Phase.BEHAVIORAL: "Behavioral Config",
    Phase.TOOLS: "External Tools",
    Phase.ENVIRONMENT: "Environment Variables",
    Phase.VERIFY: "Verification",
}


def echo_result(result: OperationResult) -> None:
    label, color = _STATUS_STYLE[result.status]
    click.secho(f"  {label:<4}", fg=color, bold=result.failed, nl=False)
    suffix = f" — {result.message}" if result.message else ""
    via = f" [{result.adapter}]" if result.adapter else ""
    click.echo(f"  {result.label}{via}{suffix}")


def echo_report(report: OperationReport) -> None:
    for phase in Phase:
        results = report.phases.get(phase)
        if not results:
            continue
        click.echo()
        click.secho(_PHASE_TITLES[phase], bold=True)
        for result in results:
            echo_result(result)
    echo_summary(report)


def echo_summary(report: OperationReport) -> None:
    color = {"ok": "green", "partial": "yellow", "failed": "red"}[report.status]
    click.echo()
    click.secho(
        f"   Result: {report.applied} applied, {report.disabled} disabled, "
        f"{report.skipped} skipped, {report.failed} failed",
        fg=color,
        bold=True,
    )


def echo_diff(diff: RigDiff) -> None:
    if diff.version_change:
        vc = diff.version_change
        click.echo(f"  Version: {vc.from_version} → {vc.to_version}")
    rows = (
        ("+", "green", "plugin", diff.components_added),
        ("-", "red", "plugin", diff.components_removed),
        ("+", "green", "conflict", diff.conflicts_added),
        ("-", "red", "conflict", diff.conflicts_removed),
        ("+", "green", "MCP server", diff.services_added),
        ("-", "red", "MCP server", diff.services_removed),
    )
    for sign, color, what, ids in rows:
        for unit in ids:
            click.secho(f"  {sign} {what}: {unit}", fg=color)
