"""
Registry engine for agent tools.

The only component with business-rule authority: it validates requests,
derives tool identity and runs every multi-table write inside a single
store transaction. Listing and search are delegated to
``ToolSearchService``; the invocation audit trail to
``InvocationTracker``.
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import (
    DuplicateError,
    NotFoundError,
    ValidationError,
    classify_store_errors,
)
from agent_tools.core.identity import make_tool_id, utc_now
from agent_tools.core.invocations import InvocationTracker
from agent_tools.core.models import (
    Invocation,
    Provider,
    RegisterToolRequest,
    SearchQuery,
    SearchResult,
    Tool,
    ToolUpdate,
)
from agent_tools.core.records import (
    PROVIDER_COLUMNS,
    TOOL_COLUMNS,
    dump_pricing,
    dump_schema,
    dump_tags,
    format_time,
    provider_from_row,
    tool_from_row,
)
from agent_tools.core.search import ToolSearchService
from agent_tools.core.store import Store
from agent_tools.core.validators import (
    coerce_model,
    validate_provider,
    validate_register_tool_request,
    validate_tool_update,
)
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)


def _tool_not_found(tool_id: str) -> NotFoundError:
    return NotFoundError(f"tool not found: {tool_id}", error_code="TOOL_NOT_FOUND",
                         details={"tool_id": tool_id})


def _provider_not_found(provider_id: str) -> NotFoundError:
    return NotFoundError(f"provider not found: {provider_id}", error_code="PROVIDER_NOT_FOUND",
                         details={"provider_id": provider_id})


class Registry:
    """
    Catalogue of providers, tools and invocations.

    Safe to share between threads: all state lives in the store, whose
    connection lock serialises operations.
    """

    def __init__(self, store: Store):
        """
        Initialize the registry on an open store.

        Args:
            store: Store returned by ``Store.open``
        """
        self.store = store
        self.search_service = ToolSearchService(store)
        self.invocations = InvocationTracker(store)

    @classmethod
    def open(cls, location: Union[str, Path], busy_timeout_ms: int = 5000) -> "Registry":
        """Open the store at ``location`` and wrap it in a registry."""
        return cls(Store.open(location, busy_timeout_ms=busy_timeout_ms))

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "Registry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def info(self) -> Dict[str, Any]:
        with classify_store_errors("store info"):
            return self.store.info()

    # Tools

    def register_tool(self, request: Union[RegisterToolRequest, Mapping[str, Any]],
                      ctx: Optional[CallContext] = None) -> Tool:
        """
        Register a tool for its provider.

        The provider row is created as a placeholder if it does not exist
        yet, otherwise its ``last_seen`` is bumped. When the triple only
        exists as a deactivated tool, that row is reactivated with the new
        definition under the same derived ID.

        Returns:
            The tool exactly as persisted

        Raises:
            ValidationError: If a required field is missing or malformed
            DuplicateError: If an active tool with the same triple exists
            InternalError: On any other store failure
        """
        request = validate_register_tool_request(
            coerce_model(RegisterToolRequest, request, error_code="INVALID_SCHEMA")
        )
        tool_id = make_tool_id(request.name, request.version, request.provider_id)
        now = format_time(utc_now())

        values = {
            "name": request.name,
            "version": request.version,
            "description": request.description,
            "schema_json": dump_schema(request.tool_schema),
            "pricing": dump_pricing(request.pricing),
            "provider_id": request.provider_id,
            "endpoint": request.endpoint,
            "timeout_ms": request.timeout_ms,
            "tags": dump_tags(request.tags),
            "created_at": now,
            "updated_at": now,
        }

        with classify_store_errors("register tool", tool_id=tool_id, provider_id=request.provider_id):
            try:
                with self.store.transaction(ctx) as cursor:
                    cursor.execute(
                        "INSERT INTO providers (id, created_at, last_seen) VALUES (?, ?, ?) "
                        "ON CONFLICT(id) DO UPDATE SET last_seen = excluded.last_seen",
                        (request.provider_id, now, now),
                    )

                    existing = cursor.execute(
                        "SELECT name, version, provider_id, is_active FROM tools WHERE id = ?",
                        (tool_id,),
                    ).fetchone()

                    if existing is not None and (
                        (existing["name"], existing["version"], existing["provider_id"])
                        != (request.name, request.version, request.provider_id)
                    ):
                        raise self._id_collision(request, tool_id, existing)

                    if existing is None:
                        columns = ", ".join(["id", *values])
                        placeholders = ", ".join("?" for _ in range(len(values) + 1))
                        cursor.execute(
                            f"INSERT INTO tools ({columns}) VALUES ({placeholders})",
                            (tool_id, *values.values()),
                        )
                    elif existing["is_active"]:
                        raise self._duplicate(request)
                    else:
                        assignments = ", ".join(f"{column} = ?" for column in values)
                        cursor.execute(
                            f"UPDATE tools SET {assignments}, is_active = 1 WHERE id = ?",
                            (*values.values(), tool_id),
                        )
                        logger.info("Reactivating deactivated tool", extra={"tool_id": tool_id})

                    row = cursor.execute(
                        f"SELECT {TOOL_COLUMNS} FROM tools WHERE id = ?", (tool_id,)
                    ).fetchone()
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise self._duplicate(request) from e
                raise

        tool = tool_from_row(row)
        logger.info("Tool registered", extra={
            "tool_id": tool.id,
            "tool_name": tool.name,
            "tool_version": tool.version,
            "provider_id": tool.provider_id,
        })
        return tool

    def _duplicate(self, request: RegisterToolRequest) -> DuplicateError:
        logger.warning("Duplicate tool registration", extra={
            "tool_name": request.name,
            "tool_version": request.version,
            "provider_id": request.provider_id,
        })
        return DuplicateError(
            f"duplicate tool: {request.name}@{request.version}",
            details={"name": request.name, "version": request.version},
        )

    def _id_collision(self, request: RegisterToolRequest, tool_id: str, existing) -> DuplicateError:
        # name@version#provider is ambiguous when a name or version contains '@' or '#'
        logger.warning("Tool id already held by another triple", extra={
            "tool_id": tool_id,
            "tool_name": request.name,
            "tool_version": request.version,
            "held_by": f"{existing['name']}@{existing['version']}",
        })
        return DuplicateError(
            f"tool id {tool_id} is already held by {existing['name']}@{existing['version']}",
            details={
                "id": tool_id,
                "name": request.name,
                "version": request.version,
                "held_by_name": existing["name"],
                "held_by_version": existing["version"],
            },
        )

    def get_tool(self, tool_id: str, ctx: Optional[CallContext] = None) -> Tool:
        """
        Look up a tool by ID, active or not.

        Raises:
            NotFoundError: If no tool has this ID
        """
        with classify_store_errors("get tool", tool_id=tool_id):
            with self.store.read(ctx) as cursor:
                row = cursor.execute(
                    f"SELECT {TOOL_COLUMNS} FROM tools WHERE id = ?", (tool_id,)
                ).fetchone()
        if row is None:
            raise _tool_not_found(tool_id)
        return tool_from_row(row)

    def list_tools(self, page: int = 1, limit: int = 20,
                   ctx: Optional[CallContext] = None) -> SearchResult:
        """Active tools, newest first. ``total`` counts all active tools."""
        result = self.search_service.search(SearchQuery(page=page, limit=limit), ctx)
        return result.model_copy(update={"query": None})

    def search_tools(self, query: Union[SearchQuery, Mapping[str, Any], str],
                     ctx: Optional[CallContext] = None) -> SearchResult:
        """
        Prefix full-text search over active tools, newest first.

        An empty query text behaves like ``list_tools`` with the filters
        still applied.
        """
        if isinstance(query, str):
            query = SearchQuery(query=query)
        query = coerce_model(SearchQuery, query)
        return self.search_service.search(query, ctx)

    def update_tool(self, tool_id: str, provider_id: str,
                    update: Union[ToolUpdate, Mapping[str, Any]],
                    ctx: Optional[CallContext] = None) -> Tool:
        """
        Edit an active tool's mutable fields as its owner.

        Raises:
            ValidationError: If the update is empty or malformed
            NotFoundError: If the tool is unknown, inactive or not owned by
                ``provider_id``
        """
        update = validate_tool_update(coerce_model(ToolUpdate, update))

        changes: Dict[str, Any] = {}
        if update.description is not None:
            changes["description"] = update.description
        if update.pricing is not None:
            changes["pricing"] = dump_pricing(update.pricing)
        if update.endpoint is not None:
            changes["endpoint"] = update.endpoint
        if update.timeout_ms is not None:
            changes["timeout_ms"] = update.timeout_ms
        if update.tags is not None:
            changes["tags"] = dump_tags(update.tags)
        changes["updated_at"] = format_time(utc_now())

        assignments = ", ".join(f"{column} = ?" for column in changes)

        with classify_store_errors("update tool", tool_id=tool_id):
            with self.store.transaction(ctx) as cursor:
                cursor.execute(
                    f"UPDATE tools SET {assignments} "
                    "WHERE id = ? AND provider_id = ? AND is_active = 1",
                    (*changes.values(), tool_id, provider_id),
                )
                if cursor.rowcount == 0:
                    raise _tool_not_found(tool_id)
                row = cursor.execute(
                    f"SELECT {TOOL_COLUMNS} FROM tools WHERE id = ?", (tool_id,)
                ).fetchone()

        logger.info("Tool updated", extra={
            "tool_id": tool_id,
            "provider_id": provider_id,
            "fields": sorted(k for k in changes if k != "updated_at"),
        })
        return tool_from_row(row)

    def deactivate_tool(self, tool_id: str, provider_id: str,
                        ctx: Optional[CallContext] = None) -> None:
        """
        Soft-delete a tool owned by ``provider_id``.

        Deactivating an already inactive tool succeeds again.

        Raises:
            NotFoundError: If the tool is unknown or owned by someone else
        """
        with classify_store_errors("deactivate tool", tool_id=tool_id):
            with self.store.transaction(ctx) as cursor:
                cursor.execute(
                    "UPDATE tools SET is_active = 0, updated_at = ? WHERE id = ? AND provider_id = ?",
                    (format_time(utc_now()), tool_id, provider_id),
                )
                if cursor.rowcount == 0:
                    logger.warning("Deactivation rejected", extra={
                        "tool_id": tool_id,
                        "provider_id": provider_id,
                    })
                    raise _tool_not_found(tool_id)

        logger.info("Tool deactivated", extra={"tool_id": tool_id, "provider_id": provider_id})

    # Providers

    def register_provider(self, provider: Union[Provider, Mapping[str, Any]],
                          ctx: Optional[CallContext] = None) -> Provider:
        """
        Create or refresh a provider.

        Name, endpoint, pubkey and stake are overwritten; ``id``,
        ``created_at`` and reputation are kept.

        Raises:
            ValidationError: If id, endpoint or pubkey is missing
        """
        provider = validate_provider(coerce_model(Provider, provider))
        now = format_time(utc_now())

        with classify_store_errors("register provider", provider_id=provider.id):
            with self.store.transaction(ctx) as cursor:
                cursor.execute(
                    "INSERT INTO providers (id, name, endpoint, pubkey, stake_claw, created_at, last_seen) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET "
                    "name = excluded.name, endpoint = excluded.endpoint, pubkey = excluded.pubkey, "
                    "stake_claw = excluded.stake_claw, last_seen = excluded.last_seen",
                    (provider.id, provider.name, provider.endpoint, provider.pubkey,
                     provider.stake_claw, now, now),
                )
                row = cursor.execute(
                    f"SELECT {PROVIDER_COLUMNS} FROM providers WHERE id = ?", (provider.id,)
                ).fetchone()

        logger.info("Provider registered", extra={"provider_id": provider.id})
        return provider_from_row(row)

    def get_provider(self, provider_id: str, ctx: Optional[CallContext] = None) -> Provider:
        with classify_store_errors("get provider", provider_id=provider_id):
            with self.store.read(ctx) as cursor:
                row = cursor.execute(
                    f"SELECT {PROVIDER_COLUMNS} FROM providers WHERE id = ?", (provider_id,)
                ).fetchone()
        if row is None:
            raise _provider_not_found(provider_id)
        return provider_from_row(row)

    def list_providers(self, ctx: Optional[CallContext] = None) -> List[Provider]:
        """All providers, best reputation first, then newest."""
        with classify_store_errors("list providers"):
            with self.store.read(ctx) as cursor:
                rows = cursor.execute(
                    f"SELECT {PROVIDER_COLUMNS} FROM providers "
                    "ORDER BY reputation DESC, created_at DESC, rowid DESC"
                ).fetchall()
        return [provider_from_row(row) for row in rows]

    def adjust_reputation(self, provider_id: str, delta: int,
                          ctx: Optional[CallContext] = None) -> Provider:
        """
        Add ``delta`` (possibly negative) to a provider's reputation.

        Raises:
            NotFoundError: If the provider does not exist
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("reputation delta must be an integer", details={"delta": repr(delta)})

        with classify_store_errors("adjust reputation", provider_id=provider_id):
            with self.store.transaction(ctx) as cursor:
                cursor.execute(
                    "UPDATE providers SET reputation = reputation + ? WHERE id = ?",
                    (delta, provider_id),
                )
                if cursor.rowcount == 0:
                    raise _provider_not_found(provider_id)
                row = cursor.execute(
                    f"SELECT {PROVIDER_COLUMNS} FROM providers WHERE id = ?", (provider_id,)
                ).fetchone()

        provider = provider_from_row(row)
        logger.info("Provider reputation adjusted", extra={
            "provider_id": provider_id,
            "delta": delta,
            "reputation": provider.reputation,
        })
        return provider

    # Invocations

    def record_invocation(self, tool_id: str, consumer_id: str, payload: Any,
                          ctx: Optional[CallContext] = None) -> str:
        return self.invocations.record(tool_id, consumer_id, payload, ctx)

    def complete_invocation(self, invocation_id: str, output_hash: str, receipt_sig: str = "",
                            cost_claw: Optional[str] = None,
                            ctx: Optional[CallContext] = None) -> Invocation:
        return self.invocations.complete(invocation_id, output_hash, receipt_sig, cost_claw, ctx)

    def fail_invocation(self, invocation_id: str, reason: str,
                        ctx: Optional[CallContext] = None) -> Invocation:
        return self.invocations.fail(invocation_id, reason, ctx)

    def timeout_invocation(self, invocation_id: str, reason: str = "invocation timed out",
                           ctx: Optional[CallContext] = None) -> Invocation:
        return self.invocations.mark_timeout(invocation_id, reason, ctx)

    def get_invocation(self, invocation_id: str, ctx: Optional[CallContext] = None) -> Invocation:
        return self.invocations.get(invocation_id, ctx)

    def list_invocations(self, tool_id: str, limit: int = 50,
                         ctx: Optional[CallContext] = None) -> List[Invocation]:
        return self.invocations.list_for_tool(tool_id, limit, ctx)
