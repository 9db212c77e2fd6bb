"""
Test tool discovery of agent-tools.

Full-text matching, filters and the index staying in step with edits.
"""

import pytest

from agent_tools.core.models import SearchQuery
from agent_tools.core.search import build_match_expression, normalize_page

ALICE = "did:claw:agent:alice"
BOB = "did:claw:agent:bob"


@pytest.mark.unit
class TestMatchExpression:
    """Test FTS query construction."""

    def test_single_term_is_prefix(self):
        assert build_match_expression("solid") == '"solid"*'

    def test_terms_are_anded(self):
        assert build_match_expression("smart  audit") == '"smart"* AND "audit"*'

    def test_quotes_are_escaped(self):
        assert build_match_expression('say"hi') == '"say""hi"*'

    def test_punctuation_only(self):
        assert build_match_expression("*** ( )") is None

    def test_blank(self):
        assert build_match_expression("   ") is None


@pytest.mark.unit
class TestNormalizePage:
    """Test pagination clamping."""

    @pytest.mark.parametrize("page,limit,expected", [
        (1, 20, (1, 20)),
        (0, 5, (1, 5)),
        (3, 0, (3, 20)),
        (1, 101, (1, 20)),
        (1, 100, (1, 100)),
        (None, None, (1, 20)),
    ])
    def test_clamp(self, page, limit, expected):
        assert normalize_page(page, limit) == expected


@pytest.fixture
def catalogue(registry, make_tool_request):
    """Two tools with disjoint descriptions and owners."""
    auditor = registry.register_tool(make_tool_request())
    prices = registry.register_tool(make_tool_request(
        name="price-feed",
        description="Returns DeFi token prices",
        tags=["defi", "oracle"],
        pricing={"model": "per_call", "amount_claw": "2"},
        provider_id=BOB,
    ))
    return auditor, prices


@pytest.mark.integration
class TestSearchTools:
    """Test search against a live registry."""

    def test_search_scoping(self, registry, catalogue):
        auditor, _ = catalogue

        result = registry.search_tools("solidity")

        assert [t.id for t in result.tools] == [auditor.id]
        assert result.total == 1
        assert result.query == "solidity"

    def test_prefix_match(self, registry, catalogue):
        auditor, _ = catalogue
        assert [t.id for t in registry.search_tools("solid").tools] == [auditor.id]

    def test_matches_tags(self, registry, catalogue):
        _, prices = catalogue
        assert [t.id for t in registry.search_tools("oracle").tools] == [prices.id]

    def test_case_insensitive(self, registry, catalogue):
        _, prices = catalogue
        assert [t.id for t in registry.search_tools("DEFI").tools] == [prices.id]

    def test_all_terms_must_match(self, registry, catalogue):
        assert registry.search_tools("solidity prices").total == 0

    def test_no_match(self, registry, catalogue):
        result = registry.search_tools("kubernetes")
        assert result.tools == []
        assert result.total == 0

    def test_empty_query_browses(self, registry, catalogue):
        auditor, prices = catalogue

        result = registry.search_tools("")

        assert [t.id for t in result.tools] == [prices.id, auditor.id]
        assert result.total == 2

    def test_fts_syntax_is_literal(self, registry, catalogue):
        # Operators and parentheses must not reach the FTS parser unquoted.
        assert registry.search_tools("solidity OR (").total == 0
        assert registry.search_tools("NOT").total == 0

    def test_punctuation_query_is_empty_result(self, registry, catalogue):
        assert registry.search_tools("***").total == 0

    def test_deactivated_tools_hidden(self, registry, catalogue):
        auditor, _ = catalogue
        registry.deactivate_tool(auditor.id, ALICE)
        assert registry.search_tools("solidity").total == 0

    def test_index_follows_updates(self, registry, catalogue):
        auditor, _ = catalogue
        registry.update_tool(auditor.id, ALICE, {"description": "Reviews Vyper code", "tags": ["vyper"]})

        assert registry.search_tools("smart").total == 0
        assert [t.id for t in registry.search_tools("vyper").tools] == [auditor.id]

    def test_total_counts_all_matches(self, registry, make_tool_request):
        for i in range(5):
            registry.register_tool(make_tool_request(name=f"auditor-{i}"))

        result = registry.search_tools({"q": "auditor", "page": 2, "limit": 2})

        assert len(result.tools) == 2
        assert result.total == 5
        assert result.page == 2


@pytest.mark.integration
class TestSearchFilters:
    """Test tag, provider and price filters."""

    def test_tag_filter(self, registry, catalogue):
        auditor, _ = catalogue
        result = registry.search_tools(SearchQuery(tag="security"))
        assert [t.id for t in result.tools] == [auditor.id]

    def test_tag_filter_is_exact(self, registry, catalogue):
        assert registry.search_tools(SearchQuery(tag="secur")).total == 0

    def test_provider_filter(self, registry, catalogue):
        _, prices = catalogue
        result = registry.search_tools(SearchQuery(provider=BOB))
        assert [t.id for t in result.tools] == [prices.id]

    def test_max_price(self, registry, catalogue):
        auditor, _ = catalogue
        result = registry.search_tools(SearchQuery(max_price_claw=1.0))
        assert [t.id for t in result.tools] == [auditor.id]

    def test_free_tools_always_within_budget(self, registry, catalogue, make_tool_request):
        free = registry.register_tool(make_tool_request(name="free-tool", pricing=None))
        result = registry.search_tools(SearchQuery(max_price_claw=0))
        assert [t.id for t in result.tools] == [free.id]

    def test_filters_combine_with_text(self, registry, catalogue):
        assert registry.search_tools(SearchQuery(query="solidity", provider=BOB)).total == 0
        assert registry.search_tools(SearchQuery(query="solidity", provider=ALICE)).total == 1
