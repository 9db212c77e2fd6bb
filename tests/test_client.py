"""
Test the HTTP client of agent-tools.

Responses are served by ``httpx.MockTransport``; payloads come from a
real registry so they match what the server sends.
"""

import json

import httpx
import pytest

from agent_tools.client import ClientError, RegistryClient

ALICE = "did:claw:agent:alice"


def make_client(handler, token=None):
    return RegistryClient("http://registry.test", token=token, transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestRegistryClient:
    """Test request building and response parsing."""

    def test_list_tools(self, registry, registered_tool):
        payload = registry.list_tools(page=1, limit=5).to_dict()
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=payload)

        with make_client(handler) as client:
            result = client.list_tools(limit=5)

        assert seen == {"path": "/v1/tools", "params": {"page": "1", "limit": "5"}}
        assert result.total == 1
        assert result.tools[0] == registered_tool

    def test_search_params(self, registry):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"tools": [], "total": 0, "page": 1, "limit": 20, "query": "audit"})

        with make_client(handler) as client:
            result = client.search_tools("audit", tag="security", max_price=1.5)

        assert seen == {"q": "audit", "tag": "security", "max_price_claw": "1.5", "page": "1", "limit": "20"}
        assert result.query == "audit"

    def test_register_tool_sends_token(self, registered_tool, make_tool_request):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=registered_tool.to_dict())

        request = make_tool_request()
        del request["provider_id"]
        with make_client(handler, token=ALICE) as client:
            tool = client.register_tool(request)

        assert seen["auth"] == f"Bearer {ALICE}"
        assert seen["body"]["name"] == "solidity-auditor"
        assert tool.id == registered_tool.id

    def test_error_envelope(self):
        def handler(request):
            return httpx.Response(409, json={"error": {"code": "DUPLICATE_TOOL", "message": "duplicate tool: a@1"}})

        with make_client(handler) as client:
            with pytest.raises(ClientError) as exc_info:
                client.register_tool({"name": "a"})

        error = exc_info.value
        assert error.status_code == 409
        assert error.error_code == "DUPLICATE_TOOL"
        assert error.message == "duplicate tool: a@1"
        assert error.retryable is False

    def test_non_json_error(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with make_client(handler) as client:
            with pytest.raises(ClientError) as exc_info:
                client.get_tool("x")

        assert exc_info.value.error_code == "HTTP_502"
        assert exc_info.value.retryable is True

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with pytest.raises(ClientError) as exc_info:
                client.healthz()

        assert exc_info.value.status_code == 0
        assert exc_info.value.error_code == "CONNECTION_ERROR"

    def test_deactivate(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(204)

        with make_client(handler, token=ALICE) as client:
            client.deactivate_tool("did:claw:tool:abc")

        assert seen == {"method": "DELETE", "path": "/v1/tools/did:claw:tool:abc"}

    def test_list_providers(self, registry):
        provider = registry.register_provider({"id": ALICE, "endpoint": "e1", "pubkey": "k1"})

        def handler(request):
            return httpx.Response(200, json={"providers": [provider.to_dict()]})

        with make_client(handler) as client:
            assert client.list_providers() == [provider]
