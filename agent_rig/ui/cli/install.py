"""
CLI command: install.

Thin wrapper over ``agent_rig.core.use_cases.install``.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence

import click

from agent_rig.core.engine.gate import Decision
from agent_rig.core.errors import PersistenceFailure
from agent_rig.core.models.manifest import ComponentRef
from agent_rig.core.use_cases.install import InstallPlan
from agent_rig.ui.cli.output import echo_report


def echo_plan(plan: InstallPlan) -> None:
    manifest = plan.manifest

    if plan.warnings:
        click.echo()
        click.secho("⚠ Potential conflicts:", fg="yellow", bold=True)
        for w in plan.warnings:
            reason = f" — {w.reason}" if w.reason else ""
            click.echo(f"  !  {w.installed} ↔ {w.conflicts_with}{reason}")
        click.secho(
            "  These will be disabled during install if declared in the rig manifest.", dim=True
        )

    click.echo()
    click.secho("Install Plan:", bold=True)
    if plan.components:
        click.echo(f"  Install {len(plan.components)} plugins")
    if manifest.plugins.conflicts:
        click.echo(f"  Disable {len(manifest.plugins.conflicts)} conflicting plugins")
    if manifest.mcp_servers:
        click.echo(f"  Configure {len(manifest.mcp_servers)} MCP servers")
    if plan.required_tools:
        click.echo(f"  Install {len(plan.required_tools)} tools via shell commands:")
        for tool in plan.required_tools:
            click.secho(f"    check: $ {tool.check}", dim=True)
            click.secho(f"    install: $ {tool.install}", dim=True)
    if plan.optional_tools:
        if plan.include_optional:
            click.echo(f"  Install {len(plan.optional_tools)} optional tools:")
        else:
            click.echo(
                f"  Optional {len(plan.optional_tools)} tools (use --include-optional to install):"
            )
        for tool in plan.optional_tools:
            click.secho(f"    {tool.name}: $ {tool.install}", dim=True)
    if plan.behavioral_files:
        click.echo(f"  Behavioral {', '.join(plan.behavioral_files)} → .claude/rigs/{manifest.name}/")
    if manifest.environment:
        click.echo(f"  Environment {', '.join(manifest.environment)}")
    click.echo(f"  Platforms: {', '.join(plan.platforms)}")


def select_infrastructure(refs: Sequence[ComponentRef]) -> list[ComponentRef]:
    """Ask which infrastructure plugins to install."""
    click.echo()
    click.secho("Infrastructure plugins (select which to install):", bold=True)
    for i, ref in enumerate(refs, 1):
        desc = f" — {ref.description}" if ref.description else ""
        click.echo(f"  {i}. {ref.short_name}{desc}")
    answer = click.prompt(
        '  Enter numbers separated by commas (e.g. 1,3), "all", or "none"',
        default="none",
        show_default=False,
    ).strip().lower()

    if answer in ("", "none"):
        return []
    if answer == "all":
        return list(refs)

    selected = []
    for part in answer.split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= len(refs):
            selected.append(refs[int(part) - 1])
    if not selected:
        click.secho("  No valid selections — skipping infrastructure plugins.", fg="yellow")
    return selected


@click.command("install")
@click.argument("source")
@click.option("--dry-run", is_flag=True, help="Show what would be installed without making changes.")
@click.option("--force", is_flag=True, help="Re-install even if already installed.")
@click.option("--minimal", is_flag=True, help="Install only core and required plugins.")
@click.option("--include-optional", is_flag=True, help="Install optional tools instead of skipping them.")
@click.option("--interactive", "-i", is_flag=True, help="Choose infrastructure plugins interactively.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    source: str,
    dry_run: bool,
    force: bool,
    minimal: bool,
    include_optional: bool,
    interactive: bool,
    yes: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Install an agent rig from a GitHub repo or local path.

    Examples:

        agent-rig install mistakeknot/clavain

        agent-rig install ./my-rig --dry-run
    """
    from agent_rig.core.use_cases.install import install_rig

    def confirm(plan: InstallPlan) -> bool:
        if not as_json:
            echo_plan(plan)
        if yes:
            return True
        return click.confirm("\nProceed with installation?", default=False)

    try:
        result = install_rig(
            source,
            ctx.obj["settings"],
            force=force,
            minimal=minimal,
            include_optional=include_optional,
            dry_run=dry_run,
            mock_mode=mock,
            confirm=confirm,
            select_infrastructure=select_infrastructure if interactive else None,
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

    manifest = result.manifest
    assert manifest is not None

    click.echo()
    desc = f" — {manifest.description}" if manifest.description else ""
    click.secho(f"Installing {manifest.name} v{manifest.version}{desc}", bold=True)
    if minimal:
        click.secho("Minimal mode: installing core + required only.", fg="yellow")

    if result.decision is Decision.NOOP_SAME_VERSION:
        click.secho(f"\n{manifest.name} v{manifest.version} is already installed.", fg="green")
        click.secho(
            "Use --force to re-apply, or 'agent-rig update' if a newer version is available.",
            dim=True,
        )
        return

    if result.decision is Decision.SUGGEST_UPDATE:
        assert result.existing is not None
        click.secho(
            f"\n{manifest.name} v{result.existing.version} is already installed. "
            f"New version: v{manifest.version}.",
            fg="yellow",
        )
        click.secho(
            "Use 'agent-rig update' to apply changes incrementally, "
            "or --force to re-install from scratch.",
            dim=True,
        )
        return

    if dry_run:
        assert result.plan is not None
        echo_plan(result.plan)
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
        click.secho(f"{manifest.name} v{manifest.version} installed.", fg="green", bold=True)
    else:
        click.secho(
            f"{manifest.name} v{manifest.version} installed with {report.failed} failures. "
            "Re-run the command to retry.",
            fg="yellow",
            bold=True,
        )
    if manifest.post_install:
        click.echo()
        for line in manifest.post_install.lines:
            click.echo(line)
    click.echo("Restart your Claude Code session to apply changes.")
    click.echo()
