"""
agentbox — CLI entrypoint.

Usage:
    python -m agentbox.main --help
    python -m agentbox.main tool status
    python -m agentbox.main tool run cloudflared
    python -m agentbox.main config show
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from agentbox import __version__
from agentbox.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="agentbox")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (includes agent output).")
@click.option(
    "--data-dir",
    "-d",
    "data_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Data directory (default: $AGENTBOX_DATA_DIR or ./data).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    data_dir: str | None,
) -> None:
    """agentbox — install, run and supervise tunnel and monitoring agents."""
    from agentbox.core.services.tool_install.orchestration.manager import resolve_data_dir

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["data_dir"] = resolve_data_dir(data_dir)

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("AGENTBOX_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("AGENTBOX_LOG_FILE"),
        log_file_level=os.environ.get("AGENTBOX_LOG_FILE_LEVEL"),
        agent_level=os.environ.get("AGENTBOX_AGENT_LOG_LEVEL"),
    )


@cli.command()
@click.pass_context
def cert(ctx: click.Context) -> None:
    """Ensure the self-signed TLS certificate pair exists."""
    from agentbox.core.services.tool_install.execution.certs import ensure_cert

    data_dir: Path = ctx.obj["data_dir"]
    try:
        cert_path, key_path = ensure_cert(data_dir)
    except Exception as e:
        click.secho(f"❌ Certificate generation failed: {e}", fg="red")
        sys.exit(1)
    click.secho("✅ Certificate ready", fg="green", bold=True)
    click.echo(f"   cert: {cert_path}")
    click.echo(f"   key:  {key_path}")


# ── Sub-groups ──────────────────────────────────────────────────

from agentbox.ui.cli.config import config  # noqa: E402
from agentbox.ui.cli.tools import tool  # noqa: E402

cli.add_command(tool)
cli.add_command(config)


def main() -> None:
    """Entry point for ``python -m agentbox.main`` and the console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
