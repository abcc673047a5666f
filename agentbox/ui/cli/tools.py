"""
CLI commands for managed tools.

Thin wrappers over ``agentbox.core.services.tool_install``.
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click

from agentbox.core.models.config import ToolId

_TOOL_CHOICE = click.Choice([t.value for t in ToolId])


def _manager(ctx: click.Context):
    from agentbox.core.services.tool_install import ToolManager

    data_dir: Path = ctx.obj["data_dir"]
    return ToolManager(data_dir)


@click.group()
def tool() -> None:
    """Managed tools — install, run, and remove agents."""


@tool.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show installed/running state of every tool."""
    manager = _manager(ctx)
    result = manager.status_all()

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho("🧰 Tools:", bold=True)
    for tool_id, state in result.items():
        cfg = manager.config.get(ToolId(tool_id))
        installed = "✅ installed" if state["installed"] else "⬜ not installed"
        running = click.style("running", fg="green") if state["running"] else "stopped"
        flags = []
        if cfg.enabled:
            flags.append("enabled")
        if cfg.auto_start:
            flags.append("auto-start")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"   {tool_id:<12} {installed:<18} {running}{suffix}")


@tool.command()
@click.argument("tool_id", type=_TOOL_CHOICE)
@click.pass_context
def install(ctx: click.Context, tool_id: str) -> None:
    """Download the binary for TOOL_ID."""
    from agentbox.core.errors import AgentboxError

    try:
        path = _manager(ctx).get(tool_id).install()
    except (AgentboxError, OSError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Installed: {tool_id}", fg="green", bold=True)
    click.echo(f"   Binary: {path}")


@tool.command()
@click.argument("tool_id", type=_TOOL_CHOICE)
@click.pass_context
def uninstall(ctx: click.Context, tool_id: str) -> None:
    """Remove the binary and runtime config of TOOL_ID."""
    _manager(ctx).get(tool_id).uninstall()
    click.secho(f"✅ Uninstalled: {tool_id}", fg="green", bold=True)


@tool.command()
@click.argument("tool_id", type=_TOOL_CHOICE)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation.")
@click.pass_context
def delete(ctx: click.Context, tool_id: str, yes: bool) -> None:
    """Remove TOOL_ID completely and reset its configuration."""
    if not yes:
        click.confirm(f"Delete {tool_id} and reset its configuration?", abort=True)

    manager = _manager(ctx)
    manager.get(tool_id).delete()
    manager.shutdown()
    click.secho(f"🗑️  Deleted: {tool_id}", fg="green", bold=True)


@tool.command()
@click.argument("tool_ids", nargs=-1, type=_TOOL_CHOICE)
@click.pass_context
def run(ctx: click.Context, tool_ids: tuple[str, ...]) -> None:
    """Start tools and supervise them until interrupted.

    With no TOOL_IDS, starts every tool that is enabled and flagged
    auto-start.  Ctrl+C stops everything and cleans up.
    """
    from agentbox.core.errors import AgentboxError

    manager = _manager(ctx)

    if tool_ids:
        results: dict[str, str | None] = {}
        for tool_id in tool_ids:
            try:
                manager.get(tool_id).start()
                results[tool_id] = None
            except (AgentboxError, OSError) as e:
                results[tool_id] = str(e)
    else:
        results = manager.autostart()

    for tool_id, error in results.items():
        if error:
            click.secho(f"❌ {tool_id}: {error}", fg="red")
        else:
            click.secho(f"▶️  {tool_id} started", fg="green")

    if not any(error is None for error in results.values()):
        if not results:
            click.secho("⚠️  No tools to start (enable and auto-start one first)", fg="yellow")
        manager.shutdown()
        sys.exit(1)

    click.echo("   Press Ctrl+C to stop.")
    try:
        while manager.ctx.supervisor.running_ids():
            time.sleep(1)
        click.secho("⚠️  All tools exited", fg="yellow")
    except KeyboardInterrupt:
        click.echo()
    finally:
        click.echo("   Stopping…")
        manager.shutdown()
