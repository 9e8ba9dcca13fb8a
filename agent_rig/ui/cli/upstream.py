"""
CLI command: upstream.
"""

from __future__ import annotations

import json
import sys

import click


@click.command("upstream")
@click.argument("source")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def upstream(ctx: click.Context, source: str, as_json: bool) -> None:
    """Check a rig's plugins against its upstream marketplaces."""
    from agent_rig.core.use_cases.upstream import check_upstream

    result = check_upstream(source, ctx.obj["settings"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    manifest = result.manifest
    assert manifest is not None
    click.secho("\nUpstream Check\n", bold=True)
    click.echo(f"Rig: {click.style(manifest.name, fg='cyan')} v{manifest.version}")

    for name, reason in result.unreachable.items():
        click.secho(f"  Could not fetch marketplace {name}: {reason}", dim=True)

    if not result.published:
        click.secho("\nNo marketplace data found. Cannot check upstream versions.", dim=True)
        click.secho(
            "Ensure the rig declares marketplaces under platforms.claude-code.marketplaces",
            dim=True,
        )
        return

    click.secho("\nPlugin Status:", bold=True)
    for plugin_id in result.rig_plugins:
        published = result.published.get(plugin_id)
        if published is None:
            click.echo(f"  {click.style('?', dim=True)}  {plugin_id} — not found in marketplace")
        else:
            click.echo(f"  {click.style('✓', fg='green')}  {plugin_id} — upstream v{published.version}")

    if result.new_upstream:
        click.secho("\nNew in marketplace (not in rig):", bold=True)
        for plugin in result.new_upstream:
            desc = f" — {plugin.description}" if plugin.description else ""
            click.echo(f"  {click.style('+', fg='yellow')}  {plugin.id} v{plugin.version}{desc}")

    if result.removed_upstream:
        click.secho("\nRemoved from marketplace (still in rig):", bold=True)
        for plugin_id in result.removed_upstream:
            click.echo(f"  {click.style('-', fg='red')}  {plugin_id}")

    if result.tools:
        click.secho("\nExternal Tools:", bold=True)
        for tool in result.tools:
            if tool.installed:
                click.echo(f"  {click.style('✓', fg='green')}  {tool.name} — installed")
            else:
                need = "(optional)" if tool.optional else "(required)"
                click.echo(f"  {click.style('!', fg='yellow')}  {tool.name} — not installed {need}")

    if result.has_changes:
        click.secho(
            "\nTo adopt changes, update the rig's agent-rig.json and re-run "
            "'agent-rig install --force'.",
            dim=True,
        )
    else:
        click.secho("\nNo upstream changes detected.", fg="green")
    click.echo()
