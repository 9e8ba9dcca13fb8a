"""
CLI command: uninstall.
"""

from __future__ import annotations

import json
import sys

import click

from agent_rig.core.errors import PersistenceFailure
from agent_rig.core.models.state import RigRecord
from agent_rig.ui.cli.output import echo_report


def echo_record(record: RigRecord) -> None:
    click.secho(f"\nUninstall {record.name} v{record.version}:", bold=True)
    if record.components:
        click.echo(f"  Remove {len(record.components)} plugins")
    if record.disabled_conflicts:
        click.echo(f"  Re-enable {len(record.disabled_conflicts)} plugins")
    if record.services:
        click.echo(f"  Remove {len(record.services)} MCP servers")
    if record.behavioral:
        click.echo(f"  Remove {len(record.behavioral)} behavioral files")
    if record.env_profile_path:
        click.echo(f"  Clean environment block from {record.env_profile_path}")


@click.command("uninstall")
@click.argument("name")
@click.option("--force", is_flag=True, help="Also remove behavioral files you have edited.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def uninstall(
    ctx: click.Context,
    name: str,
    force: bool,
    yes: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Uninstall a rig and everything it recorded."""
    from agent_rig.core.use_cases.uninstall import uninstall_rig

    def confirm(record: RigRecord) -> bool:
        if not as_json:
            echo_record(record)
        if yes:
            return True
        return click.confirm("\nProceed?", default=False)

    try:
        result = uninstall_rig(
            name,
            ctx.obj["settings"],
            force=force,
            mock_mode=mock,
            confirm=confirm,
        )
    except PersistenceFailure as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if result.aborted:
        click.secho("Aborted.", fg="yellow")
        return

    report = result.report
    assert report is not None
    echo_report(report)

    click.echo()
    if result.complete:
        click.secho(f"{name} uninstalled.", fg="green", bold=True)
    else:
        click.secho(
            f"{name} partially uninstalled; remaining units are kept in state. "
            "Re-run the command to retry.",
            fg="yellow",
            bold=True,
        )
    click.echo("Restart your Claude Code session to apply changes.")
