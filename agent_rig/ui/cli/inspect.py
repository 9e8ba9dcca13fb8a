"""
CLI command: inspect.
"""

from __future__ import annotations

import json
import sys

import click

from agent_rig.core.models.manifest import ManifestSnapshot


def echo_manifest(manifest: ManifestSnapshot) -> None:
    click.secho(f"\n📦 {manifest.name} v{manifest.version}", fg="cyan", bold=True)
    click.echo(f"   {manifest.description}")
    if manifest.author:
        click.echo(f"   by {manifest.author}")

    groups = manifest.plugins
    sections = (
        ("Core", [groups.core] if groups.core else []),
        ("Required", list(groups.required)),
        ("Recommended", list(groups.recommended)),
        ("Infrastructure", list(groups.infrastructure)),
    )
    for title, refs in sections:
        if not refs:
            continue
        click.secho(f"\n   {title} plugins:", bold=True)
        for ref in refs:
            desc = f" — {ref.description}" if ref.description else ""
            click.echo(f"     • {ref.id}{desc}")

    if groups.conflicts:
        click.secho("\n   Conflicts (disabled on install):", bold=True)
        for c in groups.conflicts:
            reason = f" — {c.reason}" if c.reason else ""
            click.echo(f"     • {c.id}{reason}")

    if manifest.mcp_servers:
        click.secho("\n   MCP servers:", bold=True)
        for name, spec in manifest.mcp_servers.items():
            click.echo(f"     • {name} [{spec.type}]")

    if manifest.tools:
        click.secho("\n   Tools:", bold=True)
        for tool in manifest.tools:
            optional = " (optional)" if tool.optional else ""
            click.echo(f"     • {tool.name}{optional}")

    if manifest.environment:
        click.secho("\n   Environment:", bold=True)
        for key, value in manifest.environment.items():
            click.echo(f"     {key}={value}")
    click.echo()


@click.command("inspect")
@click.argument("source")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def inspect(ctx: click.Context, source: str, as_json: bool) -> None:
    """Show what a rig contains without installing it."""
    from agent_rig.core.use_cases.inspect import inspect_rig

    result = inspect_rig(source, ctx.obj["settings"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.manifest is not None
    echo_manifest(result.manifest)
