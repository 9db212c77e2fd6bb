"""Numbered schema migrations for the registry database."""

from agent_tools.core.migrations.manager import MigrationManager

__all__ = ["MigrationManager"]
