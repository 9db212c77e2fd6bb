"""
HTTP client for a remote agent-tools registry.

Wraps the REST API with httpx and returns the core models, so code that
talks to a registry over the network reads like code using ``Registry``
in-process.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from agent_tools.core.exceptions import RegistryError
from agent_tools.core.models import Provider, RegisterToolRequest, SearchResult, Tool
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_REGISTRY_URL = "http://localhost:8433"


class ClientError(RegistryError):
    """Non-2xx response, or the registry could not be reached."""

    default_code = "CLIENT_ERROR"

    def __init__(self, status_code: int, code: Optional[str], message: str,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code=code, details=details)
        self.status_code = status_code
        # Server-side and connection failures are worth another attempt.
        self.retryable = status_code == 0 or status_code >= 500


class RegistryClient:
    """Client for the agent-tools REST API."""

    def __init__(self, base_url: str = DEFAULT_REGISTRY_URL, token: Optional[str] = None,
                 timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize the registry client.

        Args:
            base_url: Registry address, e.g. http://localhost:8433
            token: Provider DID sent as a bearer credential
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client connection."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("Registry request failed", extra={
                "method": method,
                "path": path,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            raise ClientError(0, "CONNECTION_ERROR", f"{method} {path}: {e}") from e

        if response.is_success:
            return response

        code, message = None, response.text or response.reason_phrase
        try:
            error = response.json().get("error", {})
            code = error.get("code")
            message = error.get("message", message)
        except (ValueError, AttributeError):
            pass

        logger.debug("Registry returned error", extra={
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "error_code": code,
        })
        raise ClientError(response.status_code, code or f"HTTP_{response.status_code}", message)

    def healthz(self) -> Dict[str, Any]:
        return self._request("GET", "/healthz").json()

    def register_tool(self, request: Union[RegisterToolRequest, Mapping[str, Any]]) -> Tool:
        """Register a tool; the owner is the client's token."""
        if isinstance(request, RegisterToolRequest):
            body = request.model_dump(mode="json", by_alias=True, exclude={"provider_id"})
        else:
            body = dict(request)
        response = self._request("POST", "/v1/tools", json=body)
        return Tool.model_validate(response.json())

    def get_tool(self, tool_id: str) -> Tool:
        return Tool.model_validate(self._request("GET", f"/v1/tools/{tool_id}").json())

    def list_tools(self, page: int = 1, limit: int = 20) -> SearchResult:
        response = self._request("GET", "/v1/tools", params={"page": page, "limit": limit})
        return SearchResult.model_validate(response.json())

    def search_tools(self, query: str = "", tag: Optional[str] = None,
                     max_price: Optional[float] = None, limit: int = 20,
                     provider: Optional[str] = None, page: int = 1) -> SearchResult:
        """
        Search active tools.

        Args:
            query: Free text, prefix-matched per term
            tag: Only tools carrying this tag
            max_price: Only tools costing at most this many CLAW (free always matches)
            limit: Page size
            provider: Only tools owned by this provider
            page: Page number, starting at 1
        """
        params: Dict[str, Any] = {"q": query, "page": page, "limit": limit}
        if tag:
            params["tag"] = tag
        if provider:
            params["provider"] = provider
        if max_price is not None:
            params["max_price_claw"] = max_price
        response = self._request("GET", "/v1/tools/search", params=params)
        return SearchResult.model_validate(response.json())

    def update_tool(self, tool_id: str, changes: Mapping[str, Any]) -> Tool:
        response = self._request("PATCH", f"/v1/tools/{tool_id}", json=dict(changes))
        return Tool.model_validate(response.json())

    def deactivate_tool(self, tool_id: str) -> None:
        self._request("DELETE", f"/v1/tools/{tool_id}")

    def register_provider(self, provider: Union[Provider, Mapping[str, Any]]) -> Provider:
        if isinstance(provider, Provider):
            body = provider.model_dump(mode="json", exclude_none=True)
        else:
            body = dict(provider)
        response = self._request("POST", "/v1/providers", json=body)
        return Provider.model_validate(response.json())

    def get_provider(self, provider_id: str) -> Provider:
        return Provider.model_validate(self._request("GET", f"/v1/providers/{provider_id}").json())

    def list_providers(self) -> List[Provider]:
        data = self._request("GET", "/v1/providers").json()
        return [Provider.model_validate(item) for item in data.get("providers", [])]
