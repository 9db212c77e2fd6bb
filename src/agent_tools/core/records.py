"""
Conversion between database rows and registry models.

Structured columns (schema, pricing, tags) are stored as JSON text;
timestamps as ISO-8601 strings in UTC.
"""

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, Optional

from agent_tools.core.models import (
    Invocation,
    InvocationStatus,
    Pricing,
    Provider,
    Tool,
    ToolSchema,
)

TOOL_COLUMNS = (
    "id, name, version, description, schema_json, pricing, provider_id, "
    "endpoint, timeout_ms, tags, created_at, updated_at, is_active"
)

PROVIDER_COLUMNS = "id, name, endpoint, pubkey, stake_claw, reputation, created_at, last_seen"

INVOCATION_COLUMNS = (
    "id, tool_id, consumer_id, input_hash, output_hash, receipt_sig, status, "
    "cost_claw, escrow_id, started_at, completed_at, error"
)


def prefixed(columns: str, alias: str) -> str:
    """Qualify a column list with a table alias."""
    return ", ".join(f"{alias}.{column.strip()}" for column in columns.split(","))


def format_time(value: datetime) -> str:
    """Fixed-width ISO timestamp so text ordering matches time ordering."""
    return value.isoformat(timespec="microseconds")


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def dump_schema(schema: ToolSchema) -> str:
    return json.dumps({"input": schema.input, "output": schema.output})


def dump_pricing(pricing: Pricing) -> str:
    return json.dumps(pricing.model_dump(mode="json", exclude_none=True))


def dump_tags(tags: list) -> str:
    return json.dumps(list(tags))


def tool_from_row(row: sqlite3.Row) -> Tool:
    schema: Dict[str, Any] = json.loads(row["schema_json"])
    return Tool(
        id=row["id"],
        name=row["name"],
        version=row["version"],
        description=row["description"],
        tool_schema=ToolSchema(input=schema.get("input"), output=schema.get("output")),
        pricing=Pricing.model_validate(json.loads(row["pricing"])),
        provider_id=row["provider_id"],
        endpoint=row["endpoint"],
        timeout_ms=row["timeout_ms"],
        tags=json.loads(row["tags"]) if row["tags"] else [],
        created_at=_parse_time(row["created_at"]),
        updated_at=_parse_time(row["updated_at"]),
        is_active=bool(row["is_active"]),
    )


def provider_from_row(row: sqlite3.Row) -> Provider:
    return Provider(
        id=row["id"],
        name=row["name"],
        endpoint=row["endpoint"],
        pubkey=row["pubkey"],
        stake_claw=row["stake_claw"],
        reputation=row["reputation"],
        created_at=_parse_time(row["created_at"]),
        last_seen=_parse_time(row["last_seen"]),
    )


def invocation_from_row(row: sqlite3.Row) -> Invocation:
    return Invocation(
        id=row["id"],
        tool_id=row["tool_id"],
        consumer_id=row["consumer_id"],
        input_hash=row["input_hash"],
        output_hash=row["output_hash"],
        receipt_sig=row["receipt_sig"],
        status=InvocationStatus(row["status"]),
        cost_claw=row["cost_claw"],
        escrow_id=row["escrow_id"],
        started_at=_parse_time(row["started_at"]),
        completed_at=_parse_time(row["completed_at"]),
        error=row["error"],
    )
