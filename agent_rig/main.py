"""
agent-rig — CLI entrypoint.

Usage:
    agent-rig --help
    agent-rig install mistakeknot/clavain
    agent-rig status
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from agent_rig import __version__
from agent_rig.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="agent-rig")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """agent-rig — the rig manager for AI coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("AGENT_RIG_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("AGENT_RIG_LOG_FILE"),
        log_file_level=os.environ.get("AGENT_RIG_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )

    from agent_rig.core.config.settings import load_settings

    ctx.obj["settings"] = load_settings()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show installed rigs."""
    from agent_rig.core.use_cases.status import get_status

    result = get_status(ctx.obj["settings"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.rigs:
        click.echo("No rigs installed.")
        click.secho(f"   State file: {result.state_path}", dim=True)
        return

    verbose = ctx.obj.get("verbose", False)
    for rig in result.rigs:
        click.secho(f"\n📦 {rig.name} v{rig.version}", fg="cyan", bold=True)
        if rig.source:
            click.echo(f"   Source: {rig.source}")
        click.echo(f"   Installed: {rig.installed_at}")
        click.echo(
            f"   Plugins: {len(rig.components)}  "
            f"Disabled: {len(rig.disabled_conflicts)}  "
            f"MCP servers: {len(rig.services)}  "
            f"Behavioral: {len(rig.behavioral)}"
        )
        if rig.env_profile_path:
            click.echo(f"   Environment: {rig.env_profile_path}")
        if verbose:
            for component in rig.components:
                click.echo(f"     • {component}")
            for conflict in rig.disabled_conflicts:
                click.echo(f"     ⊘ {conflict}")
            for service in rig.services:
                click.echo(f"     ⇄ {service.name} [{service.type}]")
            for entry in rig.behavioral:
                click.echo(f"     ✎ {entry.file} ← {entry.pointer_file}")
    click.echo()


@cli.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def validate(directory: Path, as_json: bool) -> None:
    """Validate the agent-rig.json in DIRECTORY."""
    from agent_rig.core.use_cases.inspect import validate_manifest

    result = validate_manifest(directory)

    if as_json:
        payload = {"valid": result.valid, "error": result.error}
        if result.manifest_path:
            payload["path"] = str(result.manifest_path)
        click.echo(json.dumps(payload, indent=2))
        sys.exit(0 if result.valid else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    manifest = result.manifest
    assert manifest is not None
    click.secho(f"✅ {manifest.name} v{manifest.version} is valid", fg="green")
    click.echo(
        f"   {len(manifest.all_components())} plugins, "
        f"{len(manifest.plugins.conflicts)} conflicts, "
        f"{len(manifest.mcp_servers)} MCP servers, "
        f"{len(manifest.tools)} tools"
    )


@cli.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--name", default=None, help="Rig name (lowercase, hyphens).")
@click.option("--version", "rig_version", default=None, help="Initial version.")
@click.option("--description", default=None, help="One-line description.")
@click.option("--author", default=None, help="Author name or handle.")
@click.option("--yes", "-y", is_flag=True, help="Accept defaults without prompting.")
@click.option("--force", is_flag=True, help="Overwrite an existing agent-rig.json.")
def init(
    directory: Path,
    name: str | None,
    rig_version: str | None,
    description: str | None,
    author: str | None,
    yes: bool,
    force: bool,
) -> None:
    """Create a new agent-rig.json in DIRECTORY."""
    from agent_rig.core.use_cases.init import init_manifest

    default_name = directory.resolve().name.lower().replace(" ", "-").replace("_", "-")

    def ask(value: str | None, prompt: str, default: str) -> str:
        if value is not None:
            return value
        if yes:
            return default
        return click.prompt(prompt, default=default)

    result = init_manifest(
        directory,
        name=ask(name, "Rig name", default_name),
        version=ask(rig_version, "Version", "0.1.0"),
        description=ask(description, "Description", "My agent rig"),
        author=ask(author, "Author", os.environ.get("USER", "")),
        overwrite=force,
    )

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Created {result.path}", fg="green")
    click.echo("   Add plugins, MCP servers and tools, then run 'agent-rig validate'.")


# ── Register sub-command groups from agent_rig/ui/cli/ ──────────

from agent_rig.ui.cli.inspect import inspect
from agent_rig.ui.cli.install import install
from agent_rig.ui.cli.uninstall import uninstall
from agent_rig.ui.cli.update import outdated, update
from agent_rig.ui.cli.upstream import upstream

cli.add_command(install)
cli.add_command(update)
cli.add_command(outdated)
cli.add_command(uninstall)
cli.add_command(inspect)
cli.add_command(upstream)


if __name__ == "__main__":
    cli()
