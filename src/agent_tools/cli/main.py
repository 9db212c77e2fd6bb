"""
Main CLI interface for agent-tools.

Runs the registry server, queries a running registry through the SDK
client and inspects the local database.
"""

import json
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from agent_tools import __version__
from agent_tools.api.server import APIServer
from agent_tools.cli.helpers import console, handle_errors, tools_table
from agent_tools.client import RegistryClient
from agent_tools.core.registry import Registry
from agent_tools.utils.config import Config, get_config
from agent_tools.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

CONFIG_FILENAME = "agent-tools.toml"

CONFIG_TEMPLATE = """\
# agent-tools configuration
[server]
host = "127.0.0.1"
port = 8433
registry_url = "http://localhost:8433"

[database]
path = "./data/agent-tools.db"

[logging]
level = "INFO"
console_level = "WARNING"
"""


class CLIContext:
    """CLI context for passing state between commands."""

    def __init__(self, config: Config):
        self.config = config

    def registry_url(self, override: Optional[str]) -> str:
        return override or self.config.server.registry_url

    def db_path(self, override: Optional[str]) -> Path:
        return Path(override) if override else self.config.database_path


@click.group()
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.version_option(version=__version__, prog_name="agent-tools")
@click.pass_context
def cli(ctx: click.Context, debug: bool, verbose: bool):
    """
    Tool registry for autonomous agents.

    Providers register versioned tools, consumers discover them.
    """
    config = get_config()

    console_level = config.logging.console_level
    if debug:
        console_level = "DEBUG"
    elif verbose:
        console_level = "INFO"

    setup_logging(
        enabled=config.logging.enabled,
        level="DEBUG" if debug else config.logging.level,
        console_level=console_level,
        log_file=config.get_log_file(),
        format_type=config.logging.format_type,
        enable_rich=config.logging.enable_rich,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        force=True,
    )

    ctx.obj = CLIContext(config)


@cli.command()
@click.option(
    "--path", "-p",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory to initialise",
)
@handle_errors
def init(path: Path):
    """Create data/ and schemas/ and a starter agent-tools.toml."""
    for name in ("data", "schemas"):
        (path / name).mkdir(parents=True, exist_ok=True)

    config_path = path / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"Config already exists at {config_path}")
        return

    config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]✅ Initialized agent-tools at {config_path.resolve()}[/green]")
    console.print("   Run: agent-tools serve")


@cli.command()
@click.option("--host", help="Listen host")
@click.option("--port", type=int, help="Listen port")
@click.option("--db", "db_path", help="SQLite database path")
@click.pass_obj
@handle_errors
def serve(obj: CLIContext, host: Optional[str], port: Optional[int], db_path: Optional[str]):
    """Run the registry HTTP server."""
    config = obj.config
    path = obj.db_path(db_path)

    registry = Registry.open(path, busy_timeout_ms=config.database.busy_timeout_ms)
    try:
        console.print(f"[green]agent-tools registry listening on "
                      f"{host or config.server.host}:{port or config.server.port}[/green]")
        console.print(f"[dim]database: {path}[/dim]")
        APIServer(registry).run(
            host=host or config.server.host,
            port=port or config.server.port,
            log_level="debug" if config.debug else "info",
        )
    finally:
        registry.close()


@cli.group()
def tool():
    """Query tools in a running registry."""


@tool.command("list")
@click.option("--registry", "registry_url", help="Registry URL")
@click.option("--limit", type=int, default=50, show_default=True, help="Maximum tools to show")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_obj
@handle_errors
def tool_list(obj: CLIContext, registry_url: Optional[str], limit: int, as_json: bool):
    """List active tools, newest first."""
    with RegistryClient(obj.registry_url(registry_url)) as client:
        result = client.list_tools(limit=limit)

    if as_json:
        click.echo(json.dumps([t.to_dict() for t in result.tools], indent=2))
        return

    if not result.tools:
        console.print("No tools registered.")
        return

    console.print(tools_table(result.tools, f"Tools ({len(result.tools)} of {result.total})"))


@tool.command("search")
@click.option("--query", "-q", required=True, help="Search query")
@click.option("--max-price", type=float, help="Maximum price in CLAW")
@click.option("--tag", help="Only tools with this tag")
@click.option("--registry", "registry_url", help="Registry URL")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_obj
@handle_errors
def tool_search(obj: CLIContext, query: str, max_price: Optional[float], tag: Optional[str],
                registry_url: Optional[str], as_json: bool):
    """Search for tools by capability."""
    with RegistryClient(obj.registry_url(registry_url)) as client:
        result = client.search_tools(
            query,
            tag=tag,
            max_price=max_price if max_price and max_price > 0 else None,
        )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.tools:
        console.print(f"No tools found for query: {query!r}")
        return

    console.print(tools_table(result.tools, f"Found {result.total} tools"))


@cli.group()
def db():
    """Inspect the local registry database."""


@db.command("info")
@click.option("--db", "db_path", help="SQLite database path")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_obj
@handle_errors
def db_info(obj: CLIContext, db_path: Optional[str], as_json: bool):
    """Show schema version and row counts."""
    with Registry.open(obj.db_path(db_path)) as registry:
        info = registry.info()

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    table = Table(title="Registry database")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    for key, value in info.items():
        table.add_row(key, str(value))
    console.print(table)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
