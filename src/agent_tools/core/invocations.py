"""
Invocation audit trail.

An invocation row is written before any remote call happens and is moved
exactly once from ``pending`` to a terminal status. The tracker never
talks to a provider endpoint; recording an invocation only means an
attempt was logged.
"""

import sqlite3
from typing import Any, Dict, List, Optional

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    classify_store_errors,
)
from agent_tools.core.identity import hash_payload, new_invocation_id, utc_now
from agent_tools.core.models import Invocation, InvocationStatus
from agent_tools.core.records import INVOCATION_COLUMNS, format_time, invocation_from_row
from agent_tools.core.store import Store
from agent_tools.core.validators import validate_decimal_amount
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


class InvocationTracker:
    """Records invocation attempts and their terminal outcome."""

    def __init__(self, store: Store):
        self.store = store

    def record(self, tool_id: str, consumer_id: str, payload: Any,
               ctx: Optional[CallContext] = None) -> str:
        """
        Log a pending invocation of ``tool_id``.

        Only a digest of ``payload`` is stored.

        Returns:
            The new invocation ID

        Raises:
            ValidationError: If tool or consumer ID is empty
            NotFoundError: If the tool does not exist
        """
        if not tool_id or not tool_id.strip():
            raise ValidationError("tool id is required")
        if not consumer_id or not consumer_id.strip():
            raise ValidationError("consumer id is required")

        invocation_id = new_invocation_id()
        input_hash = hash_payload(payload)

        with classify_store_errors("record invocation", tool_id=tool_id):
            try:
                with self.store.transaction(ctx) as cursor:
                    cursor.execute(
                        "INSERT INTO invocations (id, tool_id, consumer_id, input_hash, status, started_at) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (invocation_id, tool_id, consumer_id, input_hash,
                         InvocationStatus.PENDING.value, format_time(utc_now())),
                    )
            except sqlite3.IntegrityError as e:
                if "FOREIGN KEY" in str(e):
                    raise NotFoundError(f"tool not found: {tool_id}", error_code="TOOL_NOT_FOUND",
                                        details={"tool_id": tool_id}) from e
                raise

        logger.info("Invocation recorded", extra={
            "invocation_id": invocation_id,
            "tool_id": tool_id,
            "consumer_id": consumer_id,
        })
        return invocation_id

    def complete(self, invocation_id: str, output_hash: str, receipt_sig: str = "",
                 cost_claw: Optional[str] = None, ctx: Optional[CallContext] = None) -> Invocation:
        """
        Mark a pending invocation completed.

        Raises:
            ValidationError: If the output hash is empty or the cost is not a decimal
            NotFoundError: If the invocation does not exist
            InvalidStateError: If the invocation already reached a terminal status
        """
        if not output_hash or not output_hash.strip():
            raise ValidationError("output hash is required")
        cost = validate_decimal_amount(cost_claw, "cost_claw")

        return self._transition(invocation_id, InvocationStatus.COMPLETED, {
            "output_hash": output_hash.strip(),
            "receipt_sig": receipt_sig or None,
            "cost_claw": cost,
        }, ctx)

    def fail(self, invocation_id: str, reason: str,
             ctx: Optional[CallContext] = None) -> Invocation:
        """Mark a pending invocation failed with ``reason``."""
        return self._transition(invocation_id, InvocationStatus.FAILED, {
            "error": reason or "unknown error",
        }, ctx)

    def mark_timeout(self, invocation_id: str, reason: str = "invocation timed out",
                     ctx: Optional[CallContext] = None) -> Invocation:
        """Mark a pending invocation as timed out."""
        return self._transition(invocation_id, InvocationStatus.TIMEOUT, {
            "error": reason,
        }, ctx)

    def _transition(self, invocation_id: str, status: InvocationStatus,
                    fields: Dict[str, Any], ctx: Optional[CallContext]) -> Invocation:
        # Only pending rows move; the status guard makes the update the
        # compare-and-set for concurrent finishers.
        assignments = ", ".join(f"{column} = ?" for column in fields)
        params = [status.value, *fields.values(), format_time(utc_now()),
                  invocation_id, InvocationStatus.PENDING.value]

        with classify_store_errors("update invocation", invocation_id=invocation_id):
            with self.store.transaction(ctx) as cursor:
                cursor.execute(
                    f"UPDATE invocations SET status = ?, {assignments}, completed_at = ? "
                    "WHERE id = ? AND status = ?",
                    params,
                )
                updated = cursor.rowcount
                row = cursor.execute(
                    f"SELECT {INVOCATION_COLUMNS} FROM invocations WHERE id = ?",
                    (invocation_id,),
                ).fetchone()

        if row is None:
            raise NotFoundError(f"invocation not found: {invocation_id}",
                                error_code="INVOCATION_NOT_FOUND",
                                details={"invocation_id": invocation_id})
        invocation = invocation_from_row(row)
        if not updated:
            logger.warning("Rejected invocation transition", extra={
                "invocation_id": invocation_id,
                "current_status": invocation.status.value,
                "requested_status": status.value,
            })
            raise InvalidStateError(
                f"invocation {invocation_id} is already {invocation.status.value}",
                details={
                    "invocation_id": invocation_id,
                    "status": invocation.status.value,
                    "requested": status.value,
                },
            )

        logger.info("Invocation finished", extra={
            "invocation_id": invocation_id,
            "tool_id": invocation.tool_id,
            "status": status.value,
        })
        return invocation

    def get(self, invocation_id: str, ctx: Optional[CallContext] = None) -> Invocation:
        with classify_store_errors("get invocation", invocation_id=invocation_id):
            with self.store.read(ctx) as cursor:
                row = cursor.execute(
                    f"SELECT {INVOCATION_COLUMNS} FROM invocations WHERE id = ?",
                    (invocation_id,),
                ).fetchone()
        if row is None:
            raise NotFoundError(f"invocation not found: {invocation_id}",
                                error_code="INVOCATION_NOT_FOUND",
                                details={"invocation_id": invocation_id})
        return invocation_from_row(row)

    def list_for_tool(self, tool_id: str, limit: int = DEFAULT_LIST_LIMIT,
                      ctx: Optional[CallContext] = None) -> List[Invocation]:
        """Invocations of a tool, newest first."""
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        with classify_store_errors("list invocations", tool_id=tool_id):
            with self.store.read(ctx) as cursor:
                rows = cursor.execute(
                    f"SELECT {INVOCATION_COLUMNS} FROM invocations WHERE tool_id = ? "
                    "ORDER BY started_at DESC, rowid DESC LIMIT ?",
                    (tool_id, limit),
                ).fetchall()
        return [invocation_from_row(row) for row in rows]
