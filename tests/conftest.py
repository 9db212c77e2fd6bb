"""
Pytest configuration and fixtures for agent-tools testing.

Every test gets its own database file under ``tmp_path`` so tests never
share registry state.
"""

from typing import Any, Callable, Dict

import pytest

from agent_tools.core.registry import Registry
from agent_tools.core.store import Store

ALICE = "did:claw:agent:alice"
BOB = "did:claw:agent:bob"


@pytest.fixture
def db_path(tmp_path):
    """Database location inside a directory that does not exist yet."""
    return tmp_path / "data" / "agent-tools.db"


@pytest.fixture
def store(db_path):
    store = Store.open(db_path)
    yield store
    store.close()


@pytest.fixture
def registry(db_path):
    registry = Registry.open(db_path)
    yield registry
    registry.close()


@pytest.fixture
def make_tool_request() -> Callable[..., Dict[str, Any]]:
    """Factory for registration payloads; keyword arguments override fields."""

    def factory(**overrides: Any) -> Dict[str, Any]:
        request = {
            "name": "solidity-auditor",
            "version": "1.0.0",
            "description": "Audits Solidity smart contracts",
            "schema": {
                "input": {"type": "object", "properties": {"source": {"type": "string"}}},
                "output": {"type": "object"},
            },
            "pricing": {"model": "per_call", "amount_claw": "0.5"},
            "endpoint": "https://alice.example/tools/auditor",
            "timeout_ms": 10000,
            "tags": ["security", "solidity"],
            "provider_id": ALICE,
        }
        request.update(overrides)
        return request

    return factory


@pytest.fixture
def registered_tool(registry, make_tool_request):
    return registry.register_tool(make_tool_request())


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
