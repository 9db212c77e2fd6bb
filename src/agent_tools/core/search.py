"""
Tool discovery over the ``tools_fts`` full-text index.

The index is maintained by triggers on the ``tools`` table; this module
only reads it. Results are ordered by recency, newest first, with text
relevance used purely as a filter.
"""

from typing import List, Optional, Tuple

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import classify_store_errors
from agent_tools.core.models import SearchQuery, SearchResult
from agent_tools.core.records import TOOL_COLUMNS, prefixed, tool_from_row
from agent_tools.core.store import Store
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_page(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """Clamp pagination: page <= 0 becomes 1, limit outside (0, 100] becomes 20."""
    if page is None or page <= 0:
        page = DEFAULT_PAGE
    if limit is None or limit <= 0 or limit > MAX_LIMIT:
        limit = DEFAULT_LIMIT
    return page, limit


def build_match_expression(query: str) -> Optional[str]:
    """
    Turn free text into an FTS5 MATCH expression.

    Every whitespace-separated term becomes a quoted prefix query and the
    terms are AND-ed, so ``"solid audit"`` matches ``solidity auditor``.
    Terms without any letter or digit are dropped since the tokenizer
    would discard them anyway.

    Returns:
        The expression, or None when no usable term remains
    """
    terms = []
    for term in query.split():
        if not any(ch.isalnum() for ch in term):
            continue
        terms.append('"' + term.replace('"', '""') + '"*')
    if not terms:
        return None
    return " AND ".join(terms)


class ToolSearchService:
    """Listing and full-text search of active tools."""

    def __init__(self, store: Store):
        self.store = store

    def search(self, query: SearchQuery, ctx: Optional[CallContext] = None) -> SearchResult:
        """
        Return one page of active tools matching the text query and filters.

        An empty query browses all active tools; filters apply either way.
        ``total`` counts every match, independent of the page window.
        """
        page, limit = normalize_page(query.page, query.limit)
        text = (query.query or "").strip()

        where_conditions = ["t.is_active = 1"]
        params: List[object] = []

        if text:
            expression = build_match_expression(text)
            if expression is None:
                logger.debug("Search query has no searchable terms", extra={"query": text})
                return SearchResult(tools=[], total=0, page=page, limit=limit, query=text)
            where_conditions.append(
                "t.rowid IN (SELECT rowid FROM tools_fts WHERE tools_fts MATCH ?)"
            )
            params.append(expression)

        where_conditions, params = self._apply_filters(where_conditions, params, query)
        where = " AND ".join(where_conditions)

        sql = (
            f"SELECT {prefixed(TOOL_COLUMNS, 't')} FROM tools t WHERE {where} "
            "ORDER BY t.created_at DESC, t.rowid DESC LIMIT ? OFFSET ?"
        )
        count_sql = f"SELECT COUNT(*) FROM tools t WHERE {where}"

        with classify_store_errors("search tools", query=text):
            with self.store.read(ctx) as cursor:
                rows = cursor.execute(sql, [*params, limit, (page - 1) * limit]).fetchall()
                total = cursor.execute(count_sql, params).fetchone()[0]

        tools = [tool_from_row(row) for row in rows]

        logger.debug("Tool search completed", extra={
            "query": text,
            "results_count": len(tools),
            "total": total,
            "filters_applied": query.has_filters(),
        })

        return SearchResult(
            tools=tools,
            total=total,
            page=page,
            limit=limit,
            query=text,
        )

    def _apply_filters(self, where_conditions: List[str], params: List[object],
                       query: SearchQuery) -> tuple:
        """Append tag, provider and price filters."""
        if query.tag:
            where_conditions.append(
                "EXISTS (SELECT 1 FROM json_each(t.tags) WHERE json_each.value = ?)"
            )
            params.append(query.tag.strip())

        if query.provider:
            where_conditions.append("t.provider_id = ?")
            params.append(query.provider.strip())

        if query.max_price_claw is not None:
            where_conditions.append(
                "(json_extract(t.pricing, '$.model') = 'free' OR "
                "CAST(COALESCE(json_extract(t.pricing, '$.amount_claw'), '0') AS REAL) <= ?)"
            )
            params.append(float(query.max_price_claw))

        return where_conditions, params
