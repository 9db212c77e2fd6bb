"""
Error handling and display utilities for CLI commands.
"""

import functools
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agent_tools.client import ClientError
from agent_tools.core.exceptions import RegistryError

console = Console()


def handle_errors(func):
    """Decorator to handle common CLI errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except ClientError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            if e.status_code == 0:
                console.print("[dim]Is the registry running? Start one with: agent-tools serve[/dim]")
            sys.exit(1)
        except RegistryError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            console.print("[dim]Use --debug for more details[/dim]")
            sys.exit(1)

    return wrapper


def tools_table(tools: list, title: str) -> Table:
    """Render tools as a rich table."""
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Price", style="green")
    table.add_column("Tags", style="magenta")
    table.add_column("ID", style="dim")

    for tool in tools:
        table.add_row(
            escape(tool.name),
            escape(tool.version),
            str(tool.pricing),
            escape(", ".join(tool.tags)),
            tool.id,
        )
    return table
