"""Core registry functionality."""

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import (
    DuplicateError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    RegistryError,
    StoreError,
    ValidationError,
)
from agent_tools.core.models import (
    Invocation,
    InvocationStatus,
    Pricing,
    PricingModel,
    Provider,
    RegisterToolRequest,
    SearchQuery,
    SearchResult,
    Tool,
    ToolSchema,
    ToolUpdate,
)
from agent_tools.core.registry import Registry
from agent_tools.core.store import Store

__all__ = [
    "CallContext",
    "DuplicateError",
    "InternalError",
    "InvalidStateError",
    "Invocation",
    "InvocationStatus",
    "NotFoundError",
    "OperationCancelledError",
    "Pricing",
    "PricingModel",
    "Provider",
    "RegisterToolRequest",
    "RegistryError",
    "SearchQuery",
    "SearchResult",
    "Store",
    "StoreError",
    "Tool",
    "ToolSchema",
    "ToolUpdate",
    "ValidationError",
]
