"""
Persistent store for the agent-tools registry.

Owns the SQLite connection, schema migrations and the unit-of-work
primitives the registry engine runs its statements in. One connection is
shared by all callers and guarded by a lock, which makes the store the
serialisation point for concurrent registry operations; WAL mode and the
busy timeout cover other processes opening the same file.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import OperationCancelledError, StoreError
from agent_tools.core.migrations.manager import MigrationManager
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)

MEMORY_LOCATION = ":memory:"

# VM instructions between cancellation checks.
PROGRESS_STEPS = 1000


def _is_memory(location: str) -> bool:
    return location == MEMORY_LOCATION or location.startswith("file::memory:")


class Store:
    """SQLite-backed store for providers, tools and invocations."""

    def __init__(self, conn: sqlite3.Connection, location: str):
        """Use ``Store.open``; this only wraps an already configured connection."""
        self._conn: Optional[sqlite3.Connection] = conn
        self._lock = threading.RLock()
        self.location = location

    @classmethod
    def open(cls, location: Union[str, Path], busy_timeout_ms: int = 5000) -> "Store":
        """
        Open (or create) the database at ``location`` and apply the schema.

        Args:
            location: Database file path, or ``":memory:"``
            busy_timeout_ms: How long to wait on another writer's lock

        Returns:
            Ready-to-use store

        Raises:
            StoreError: If the directory cannot be created, the connection
                cannot be established or migrations fail
        """
        location = str(location)
        in_memory = _is_memory(location)

        if not in_memory:
            path = Path(location).expanduser()
            location = str(path)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreError(f"create db dir: {e}", details={
                    "location": location,
                    "cause": str(e),
                })

        try:
            conn = sqlite3.connect(
                location,
                timeout=busy_timeout_ms / 1000,
                isolation_level=None,
                check_same_thread=False,
                uri=location.startswith("file:"),
            )
        except sqlite3.Error as e:
            raise StoreError(f"open sqlite: {e}", details={"location": location, "cause": str(e)})

        try:
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
            if not in_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")

            if not MigrationManager(conn).run_pending_migrations():
                raise StoreError("Failed to apply database migrations", details={"location": location})
        except sqlite3.Error as e:
            conn.close()
            raise StoreError(f"configure sqlite: {e}", details={"location": location, "cause": str(e)})
        except StoreError:
            conn.close()
            raise

        logger.info("Store opened", extra={"db_path": location})
        return cls(conn, location)

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            finally:
                self._conn = None
            logger.debug("Store closed", extra={"db_path": self.location})

    @contextmanager
    def _use(self, ctx: Optional[CallContext]) -> Iterator[sqlite3.Connection]:
        if ctx is not None:
            ctx.check()

        with self._lock:
            conn = self._conn
            if conn is None:
                raise StoreError("store is closed", details={"location": self.location})

            if ctx is not None:
                conn.set_progress_handler(ctx.done, PROGRESS_STEPS)
            try:
                yield conn
            except sqlite3.OperationalError as e:
                if ctx is not None and ctx.done():
                    raise OperationCancelledError(
                        "operation cancelled" if ctx.cancelled else "deadline exceeded",
                        details={"cause": str(e)},
                    ) from e
                raise
            finally:
                if ctx is not None:
                    conn.set_progress_handler(None, 0)

    @contextmanager
    def read(self, ctx: Optional[CallContext] = None) -> Iterator[sqlite3.Cursor]:
        """Cursor for read-only statements."""
        with self._use(ctx) as conn:
            cursor = conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    @contextmanager
    def transaction(self, ctx: Optional[CallContext] = None) -> Iterator[sqlite3.Cursor]:
        """
        Unit of work: every statement run on the yielded cursor commits
        together or not at all.

        The write lock is taken up front (``BEGIN IMMEDIATE``) so checks
        made inside the transaction still hold at commit time.
        """
        with self._use(ctx) as conn:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.cursor()
            try:
                yield cursor
                if ctx is not None:
                    ctx.check()
                conn.execute("COMMIT")
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                cursor.close()

    def _rollback(self, conn: sqlite3.Connection) -> None:
        # An interrupted write may already have been rolled back by sqlite.
        conn.set_progress_handler(None, 0)
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.error("Rollback failed", extra={"error": str(e)})

    def info(self) -> Dict[str, Any]:
        """
        Describe the database for health checks and the CLI.

        Raises:
            StoreError: If the store is closed
        """
        with self.read() as cursor:
            counts = {}
            for key, sql in (
                ("providers", "SELECT COUNT(*) FROM providers"),
                ("tools", "SELECT COUNT(*) FROM tools"),
                ("active_tools", "SELECT COUNT(*) FROM tools WHERE is_active = 1"),
                ("invocations", "SELECT COUNT(*) FROM invocations"),
            ):
                counts[key] = cursor.execute(sql).fetchone()[0]

            status = MigrationManager(cursor.connection).get_migration_status()

        in_memory = _is_memory(self.location)
        size = 0
        if not in_memory and Path(self.location).exists():
            size = Path(self.location).stat().st_size

        return {
            "path": self.location,
            "in_memory": in_memory,
            "size_bytes": size,
            **status,
            **counts,
        }
