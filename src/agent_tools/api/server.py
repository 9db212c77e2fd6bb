"""
FastAPI server for the agent-tools registry.

Routes translate HTTP requests into registry calls and registry errors
into the ``{"error": {"code", "message"}}`` envelope. Handlers are plain
functions so FastAPI runs the blocking registry calls in its threadpool.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from agent_tools import __version__
from agent_tools.api.middleware import RequestLoggingMiddleware
from agent_tools.api.models import ErrorResponse, HealthResponse, ProviderListResponse
from agent_tools.core.exceptions import (
    DuplicateError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    RegistryError,
    ValidationError,
)
from agent_tools.core.identity import ANONYMOUS_PROVIDER_ID
from agent_tools.core.models import SearchQuery
from agent_tools.core.registry import Registry
from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse.build(code, message))


def status_for(error: RegistryError) -> int:
    """HTTP status for a registry error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (DuplicateError, InvalidStateError)):
        return 409
    if isinstance(error, OperationCancelledError):
        return 503
    return 500


def provider_identity(authorization: Optional[str] = Header(default=None)) -> str:
    """
    Resolve the caller's provider ID from the Authorization header.

    ``Bearer <did>`` and a bare ``<did>`` are both accepted; a missing or
    empty header is the anonymous provider.
    """
    if not authorization or not authorization.strip():
        return ANONYMOUS_PROVIDER_ID
    parts = authorization.split()
    if parts and parts[0].lower() == "bearer":
        parts = parts[1:]
    return parts[0] if parts else ANONYMOUS_PROVIDER_ID


class APIServer:
    """agent-tools API server."""

    def __init__(self, registry: Registry):
        """
        Initialize API server.

        Args:
            registry: Open registry; the server does not close it
        """
        self.registry = registry
        self.app = self._create_app()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """Manage application lifespan."""
        logger.info("API server starting up", extra={"db_path": self.registry.store.location})
        yield
        logger.info("API server shutting down")

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""
        app = FastAPI(
            title="Agent Tools Registry",
            description="Registry and discovery API for agent tools",
            version=__version__,
            lifespan=self.lifespan,
        )

        app.add_middleware(RequestLoggingMiddleware)
        self._add_exception_handlers(app)
        self._add_routes(app)

        return app

    def _add_exception_handlers(self, app: FastAPI) -> None:
        @app.exception_handler(RegistryError)
        async def registry_error_handler(request: Request, exc: RegistryError):
            status_code = status_for(exc)
            code = exc.error_code
            if isinstance(exc, InternalError) and not isinstance(exc, OperationCancelledError):
                code = InternalError.default_code
            if status_code >= 500:
                logger.error("Request failed", extra={
                    "path": request.url.path,
                    "error_code": exc.error_code,
                    "error": exc.message,
                })
            return error_response(status_code, code, exc.message)

        @app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            errors = exc.errors()
            if any(err.get("type") == "json_invalid" for err in errors):
                return error_response(400, "INVALID_BODY", "invalid request body")
            first = errors[0] if errors else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            message = first.get("msg", "invalid request")
            return error_response(400, "INVALID_REQUEST", f"{location}: {message}" if location else message)

    def _add_routes(self, app: FastAPI) -> None:
        registry = self.registry

        @app.get("/healthz")
        def healthz():
            """Liveness plus a summary of the store."""
            try:
                database = registry.info()
            except RegistryError as e:
                logger.error("Health check failed", extra={"error": e.message})
                body = HealthResponse(status="unavailable", version=__version__)
                return JSONResponse(status_code=503, content=body.model_dump())
            return HealthResponse(status="ok", version=__version__, database=database).model_dump()

        @app.get("/v1/tools")
        def list_tools(page: int = 1, limit: int = 20):
            return registry.list_tools(page=page, limit=limit).to_dict()

        @app.post("/v1/tools", status_code=201)
        def register_tool(payload: Any = Body(default=None),
                          provider_id: str = Depends(provider_identity)):
            if isinstance(payload, dict):
                # The owner always comes from the credential.
                payload = {**payload, "provider_id": provider_id}
            try:
                tool = registry.register_tool(payload)
            except ValidationError as e:
                raise ValidationError(e.message, error_code="INVALID_SCHEMA", details=e.details) from e
            return JSONResponse(status_code=201, content=tool.to_dict())

        @app.get("/v1/tools/search")
        def search_tools(q: str = "", tag: Optional[str] = None, provider: Optional[str] = None,
                         max_price_claw: Optional[float] = None, page: int = 1, limit: int = 20):
            query = SearchQuery(query=q, tag=tag, provider=provider,
                                max_price_claw=max_price_claw, page=page, limit=limit)
            return registry.search_tools(query).to_dict()

        @app.get("/v1/tools/{tool_id}")
        def get_tool(tool_id: str):
            return registry.get_tool(tool_id).to_dict()

        @app.patch("/v1/tools/{tool_id}")
        def update_tool(tool_id: str, payload: Any = Body(default=None),
                        provider_id: str = Depends(provider_identity)):
            return registry.update_tool(tool_id, provider_id, payload).to_dict()

        @app.delete("/v1/tools/{tool_id}", status_code=204)
        def deactivate_tool(tool_id: str, provider_id: str = Depends(provider_identity)):
            registry.deactivate_tool(tool_id, provider_id)
            return Response(status_code=204)

        @app.post("/v1/invoke")
        def invoke():
            return error_response(501, "NOT_IMPLEMENTED", "tool invocation routing is not implemented")

        @app.get("/v1/providers")
        def list_providers():
            providers = [provider.to_dict() for provider in registry.list_providers()]
            return ProviderListResponse(providers=providers).model_dump()

        @app.post("/v1/providers", status_code=201)
        def register_provider(payload: Any = Body(default=None)):
            provider = registry.register_provider(payload)
            return JSONResponse(status_code=201, content=provider.to_dict())

        @app.get("/v1/providers/{provider_id}")
        def get_provider(provider_id: str):
            return registry.get_provider(provider_id).to_dict()

    def run(self, host: str = "127.0.0.1", port: int = 8433, log_level: str = "info"):
        """Run the API server."""
        import uvicorn

        logger.info("Starting API server", extra={
            "host": host,
            "port": port,
            "docs_url": f"http://{host}:{port}/docs",
        })

        uvicorn.run(self.app, host=host, port=port, log_level=log_level)


def create_app(registry: Registry) -> FastAPI:
    """Factory function returning the FastAPI application for ``registry``."""
    return APIServer(registry).app
