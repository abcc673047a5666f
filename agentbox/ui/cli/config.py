"""
CLI commands for the encrypted tool configuration.

Thin wrappers over ``agentbox.core.persistence.config_store``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from agentbox.core.models.config import ToolId

_DEFAULT_EXPORT = "config_export.json"


def _config_path(ctx: click.Context) -> Path:
    from agentbox.core.persistence.config_store import CONFIG_FILE

    data_dir: Path = ctx.obj["data_dir"]
    return data_dir / CONFIG_FILE


@click.group()
def config() -> None:
    """Configuration — view, export, import, and edit tool settings."""


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Print the decrypted configuration."""
    from agentbox.core.persistence.config_store import view_config

    data = view_config(_config_path(ctx))
    if data is None:
        click.secho("⚠️  No configuration file yet (defaults in effect)", fg="yellow")
        return
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@config.command("export")
@click.argument("file", type=click.Path(dir_okay=False), default=_DEFAULT_EXPORT)
@click.pass_context
def export_cmd(ctx: click.Context, file: str) -> None:
    """Write the decrypted configuration to FILE as plain JSON."""
    from agentbox.core.persistence.config_store import export_config

    try:
        dest = export_config(_config_path(ctx), Path(file).resolve())
    except FileNotFoundError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Exported: {dest}", fg="green", bold=True)
    click.secho("   ⚠️  The export is plain text and contains secrets", fg="yellow")


@config.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False), default=_DEFAULT_EXPORT)
@click.pass_context
def import_cmd(ctx: click.Context, file: str) -> None:
    """Validate a plain JSON FILE and store it encrypted."""
    from agentbox.core.persistence.config_store import import_config

    try:
        import_config(_config_path(ctx), Path(file).resolve())
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Imported: {file}", fg="green", bold=True)


@config.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation.")
@click.pass_context
def reset(ctx: click.Context, yes: bool) -> None:
    """Delete the configuration file (all tools back to defaults)."""
    from agentbox.core.persistence.config_store import reset_config

    if not yes:
        click.confirm("Reset the configuration to defaults?", abort=True)

    if reset_config(_config_path(ctx)):
        click.secho("✅ Configuration reset", fg="green", bold=True)
    else:
        click.echo("Nothing to reset (no configuration file).")


@config.command("set")
@click.argument("tool_id", type=click.Choice([t.value for t in ToolId]))
@click.argument("assignments", nargs=-1, required=True)
@click.pass_context
def set_cmd(ctx: click.Context, tool_id: str, assignments: tuple[str, ...]) -> None:
    """Set fields of TOOL_ID, e.g. ``config set komari server=https://x key=abc``.

    Values are coerced to each field's type (``true``, ``8001``, …).
    """
    from agentbox.core.persistence.config_store import ConfigStore

    fields: dict[str, Any] = {}
    for item in assignments:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            click.secho(f"❌ Expected KEY=VALUE, got '{item}'", fg="red")
            sys.exit(1)
        fields[key.strip()] = raw

    store = ConfigStore(_config_path(ctx))
    try:
        updated = store.update(ToolId(tool_id), **fields)
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Updated: {tool_id}", fg="green", bold=True)
    for key in fields:
        field_name = key if key in type(updated).model_fields else _snake_of(updated, key)
        click.echo(f"   {key} = {getattr(updated, field_name)!r}")


def _snake_of(model: Any, alias: str) -> str:
    for name, info in type(model).model_fields.items():
        if info.alias == alias:
            return name
    return alias
