"""Command-line interface for agent-tools."""

from agent_tools.cli.main import cli, main

__all__ = ["cli", "main"]
