"""
CLI commands: update, outdated.

Thin wrappers over ``agent_rig.core.use_cases.update``.
"""

from __future__ import annotations

import json
import sys

import click

from agent_rig.core.engine.diff import RigDiff
from agent_rig.core.errors import PersistenceFailure
from agent_rig.ui.cli.output import echo_diff, echo_report


@click.command("update")
@click.argument("name")
@click.option("--dry-run", is_flag=True, help="Show what would change without making changes.")
@click.option("--force", is_flag=True, help="Overwrite behavioral files even if modified.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(
    ctx: click.Context,
    name: str,
    dry_run: bool,
    force: bool,
    yes: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Update an installed rig to the latest version from its source."""
    from agent_rig.core.use_cases.update import update_rig

    def confirm(diff: RigDiff) -> bool:
        if not as_json:
            click.secho("\nChanges:", bold=True)
            echo_diff(diff)
        if yes:
            return True
        return click.confirm("\nApply these changes?", default=False)

    try:
        result = update_rig(
            name,
            ctx.obj["settings"],
            dry_run=dry_run,
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

    record = result.record
    assert record is not None
    if result.up_to_date:
        click.secho(f"{name} v{record.version} is already up to date.", fg="green")
        return

    if dry_run:
        assert result.diff is not None
        click.secho(f"\nUpdate available for {name}:", bold=True)
        echo_diff(result.diff)
        click.secho("\nDry run — no changes will be made.", fg="yellow")
        return

    if result.aborted:
        click.secho("Aborted.", fg="yellow")
        return

    report = result.report
    assert report is not None
    echo_report(report)

    click.echo()
    if report.all_ok:
        assert result.manifest is not None
        click.secho(f"{name} updated to v{result.manifest.version}.", fg="green", bold=True)
    else:
        click.secho(
            f"{name} updated with {report.failed} failures. Re-run the command to retry.",
            fg="yellow",
            bold=True,
        )
    click.echo("Restart your Claude Code session to apply changes.")


@click.command("outdated")
@click.argument("name", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def outdated(ctx: click.Context, name: str | None, as_json: bool) -> None:
    """Check installed rigs for available updates."""
    from agent_rig.core.use_cases.update import check_outdated

    result = check_outdated(ctx.obj["settings"], name)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.entries:
        click.echo("No rigs installed.")
        return

    for entry in result.entries:
        if entry.error:
            click.secho(f"  {entry.name}: could not check ({entry.error})", fg="red")
        elif entry.outdated:
            click.secho(
                f"  {entry.name}: v{entry.installed_version} → v{entry.latest_version}",
                fg="yellow",
                bold=True,
            )
            assert entry.diff is not None
            echo_diff(entry.diff)
        else:
            click.secho(f"  {entry.name}: v{entry.installed_version} (up to date)", fg="green")
