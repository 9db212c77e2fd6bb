"""
Migration manager for the registry database schema.

Migrations are numbered modules next to this file (``NNN_name.py``) that
expose ``STATEMENTS``, a list of idempotent DDL statements. The applied
version is tracked in ``PRAGMA user_version`` so the schema carries no
bookkeeping tables of its own.
"""

import importlib
import sqlite3
from pathlib import Path
from typing import Dict, List, Tuple

from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)

MIGRATIONS_PACKAGE = "agent_tools.core.migrations"


class MigrationManager:
    """Applies pending migrations on an open connection."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize migration manager.

        Args:
            conn: Connection in autocommit mode (``isolation_level=None``)
        """
        self.conn = conn
        self.migrations_dir = Path(__file__).parent

    def get_current_version(self) -> int:
        return self.conn.execute("PRAGMA user_version").fetchone()[0]

    def get_available_migrations(self) -> List[Tuple[str, str]]:
        """
        Get list of available migration files.

        Returns:
            Sorted list of (version, name) tuples.
        """
        migrations = []

        for file_path in self.migrations_dir.glob("[0-9][0-9][0-9]_*.py"):
            version, name = file_path.stem.split("_", 1)
            migrations.append((version, name))

        return sorted(migrations)

    def get_pending_migrations(self) -> List[Tuple[str, str]]:
        current = self.get_current_version()
        return [(v, n) for v, n in self.get_available_migrations() if int(v) > current]

    def run_migration(self, version: str, name: str) -> bool:
        """
        Run a single migration inside its own transaction.

        Every statement is safe to re-run, so a migration interrupted after
        commit but before the version bump simply applies again.

        Returns:
            True if successful, False otherwise.
        """
        module_path = f"{MIGRATIONS_PACKAGE}.{version}_{name}"

        logger.info("Running migration", extra={
            "migration_version": version,
            "migration_name": name,
        })

        try:
            migration_module = importlib.import_module(module_path)
            statements = getattr(migration_module, "STATEMENTS", None)
            if not statements:
                logger.error("Migration module has no STATEMENTS", extra={
                    "module_path": module_path
                })
                return False

            self.conn.execute("BEGIN IMMEDIATE")
            try:
                for statement in statements:
                    self.conn.execute(statement)
                # PRAGMA does not accept bound parameters
                self.conn.execute(f"PRAGMA user_version = {int(version)}")
                self.conn.execute("COMMIT")
            except sqlite3.Error:
                self.conn.execute("ROLLBACK")
                raise

            logger.info("Migration completed successfully", extra={
                "migration_version": version,
                "migration_name": name,
            })
            return True

        except (ImportError, sqlite3.Error) as e:
            logger.error("Migration execution failed", extra={
                "migration_version": version,
                "migration_name": name,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            return False

    def run_pending_migrations(self) -> bool:
        """
        Run all pending migrations.

        Returns:
            True if all migrations successful, False if any failed.
        """
        pending = self.get_pending_migrations()

        if not pending:
            logger.debug("No pending migrations to run")
            return True

        logger.info(f"Running {len(pending)} pending migrations", extra={
            "migrations": [f"{v}_{n}" for v, n in pending]
        })

        for version, name in pending:
            if not self.run_migration(version, name):
                logger.error("Migration failed, stopping migration run", extra={
                    "failed_migration": f"{version}_{name}",
                })
                return False

        return True

    def get_migration_status(self) -> Dict[str, object]:
        available = self.get_available_migrations()
        pending = self.get_pending_migrations()
        return {
            "schema_version": self.get_current_version(),
            "available_migrations": len(available),
            "pending_migrations": len(pending),
            "up_to_date": not pending,
        }
