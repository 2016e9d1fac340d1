"""
Command-line front end for hostbridge.

Lets an operator inspect the tool catalogue, run single tool calls and
check the effective access rules without an agent attached.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from hostbridge import __version__
from hostbridge.settings.config import HostBridgeSettings
from hostbridge.tools import TOOL_ALIASES, HostBridgeTools

# Load environment variables
load_dotenv()

console = Console()
# Standard output is reserved for tool results
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Setup rich logging on standard error."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def load_settings(config_path: Optional[str]) -> HostBridgeSettings:
    """Load settings from a file or the environment, exiting on errors."""
    try:
        if config_path:
            return HostBridgeSettings.from_file(config_path)
        return HostBridgeSettings()
    except FileNotFoundError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except ValidationError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings file (YAML or JSON)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """HostBridge CLI - guarded file and interpreter tools for AI agents."""
    settings = load_settings(config_path)
    setup_logging(verbose or settings.debug)
    ctx.obj = settings


@cli.command()
@click.pass_obj
def tools(settings: HostBridgeSettings):
    """List the tool catalogue."""
    bridge = HostBridgeTools(settings)

    table = Table(title="HostBridge Tools")
    table.add_column("Tool", style="green")
    table.add_column("Arguments")
    table.add_column("Description")

    for schema in bridge.get_tool_schemas():
        function = schema["function"]
        parameters = function["parameters"]
        required = set(parameters.get("required", []))
        arguments = ", ".join(
            name if name in required else f"[dim]{name}?[/dim]"
            for name in parameters.get("properties", {})
        )
        table.add_row(function["name"], arguments, function["description"])

    console.print(table)
    aliases = ", ".join(f"{old} -> {new}" for old, new in TOOL_ALIASES.items())
    console.print(f"[dim]Aliases: {aliases}[/dim]")


@cli.command()
@click.argument("tool_name")
@click.option(
    "--args",
    "-a",
    "raw_args",
    default="{}",
    help="Tool arguments as a JSON object",
)
@click.pass_obj
def call(settings: HostBridgeSettings, tool_name: str, raw_args: str):
    """
    Run a single tool call and print the JSON result.

    Examples:
        hostbridge call read_file --args '{"path": "/tmp/notes.txt"}'

        hostbridge call run_inline_code --args '{"code": "print(6 * 7)"}'
    """
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--args")
    if not isinstance(arguments, dict):
        raise click.BadParameter("Arguments must be a JSON object", param_hint="--args")

    bridge = HostBridgeTools(settings)
    result = asyncio.run(bridge.execute_tool(tool_name, arguments))

    click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    if not result.get("success", False):
        sys.exit(1)


@cli.command("check-path")
@click.argument("path")
@click.pass_obj
def check_path(settings: HostBridgeSettings, path: str):
    """Check whether PATH passes the access guard."""
    bridge = HostBridgeTools(settings)
    allowed, reason = bridge.guard.check(path)

    if allowed:
        console.print(f"[green]Allowed:[/green] {escape(reason)}")
    else:
        console.print(f"[red]Denied:[/red] {escape(reason)}")
        sys.exit(1)


@cli.command()
@click.pass_obj
def config(settings: HostBridgeSettings):
    """Show the effective settings."""
    summary = HostBridgeTools(settings).get_summary()

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    for key, value in summary["settings"].items():
        if isinstance(value, list):
            shown = escape(", ".join(value)) or "[dim](none)[/dim]"
        else:
            shown = escape(str(value))
        table.add_row(key, shown)

    console.print(Panel(table, title="HostBridge Settings", border_style="blue"))
    console.print(
        f"[dim]{len(summary['tools'])} tools, {len(summary['aliases'])} aliases[/dim]"
    )


if __name__ == "__main__":
    cli()
