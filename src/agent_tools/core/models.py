"""
Data models for the agent-tools registry.

Defines Pydantic models for providers, tools, invocations and the request
shapes the registry engine accepts. Models describe shape only; business
rules (required fields, defaults, decimal amounts) live in
``agent_tools.core.validators`` so the engine stays the single authority.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agent_tools.core.identity import ANONYMOUS_PROVIDER_ID

DEFAULT_TIMEOUT_MS = 30000


class PricingModel(str, Enum):
    """How a tool charges for invocations."""

    FREE = "free"
    PER_CALL = "per_call"
    PER_TOKEN = "per_token"
    SUBSCRIPTION = "subscription"


class InvocationStatus(str, Enum):
    """Invocation lifecycle states. Everything but PENDING is terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self is not InvocationStatus.PENDING


class Pricing(BaseModel):
    """Cost structure for invoking a tool."""

    model: PricingModel = Field(default=PricingModel.FREE, description="Pricing model")
    amount_claw: Optional[str] = Field(default=None, description="Decimal amount in CLAW")

    def __str__(self) -> str:
        if self.model == PricingModel.FREE:
            return "free"
        return f"{self.amount_claw} CLAW/{self.model.value}"


class ToolSchema(BaseModel):
    """Input/output schema documents for a tool.

    Either side may be any JSON value; a ``str`` is raw JSON text.
    """

    input: Any = Field(default=None, description="Input schema document")
    output: Any = Field(default=None, description="Output schema document")


class Tool(BaseModel):
    """A registered, versioned capability."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: str
    description: str = ""
    tool_schema: ToolSchema = Field(default_factory=ToolSchema, alias="schema")
    pricing: Pricing = Field(default_factory=Pricing)
    provider_id: str
    endpoint: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-ready dictionary."""
        return self.model_dump(mode="json", by_alias=True)


class Provider(BaseModel):
    """An agent that offers tools."""

    id: str = ""
    name: str = ""
    endpoint: str = ""
    pubkey: str = ""
    stake_claw: str = ""
    reputation: int = 0
    created_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Invocation(BaseModel):
    """Audit record of one attempt to execute a tool."""

    id: str
    tool_id: str
    consumer_id: str
    input_hash: str
    output_hash: Optional[str] = None
    receipt_sig: Optional[str] = None
    status: InvocationStatus = InvocationStatus.PENDING
    cost_claw: Optional[str] = None
    escrow_id: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class RegisterToolRequest(BaseModel):
    """Input for tool registration."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    version: str = ""
    description: str = ""
    tool_schema: ToolSchema = Field(default_factory=ToolSchema, alias="schema")
    pricing: Optional[Pricing] = None
    endpoint: str = ""
    timeout_ms: int = 0
    tags: List[str] = Field(default_factory=list)
    # Resolved from the caller's credential, never from the request body.
    provider_id: str = ANONYMOUS_PROVIDER_ID

    @field_validator("name", "version", "description", "endpoint", "timeout_ms", "tags", mode="before")
    @classmethod
    def null_to_default(cls, v: Any, info) -> Any:
        """Explicit JSON null means the field was left unset."""
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


class ToolUpdate(BaseModel):
    """Owner edit of a tool's mutable fields. ``None`` leaves a field as is."""

    description: Optional[str] = None
    pricing: Optional[Pricing] = None
    endpoint: Optional[str] = None
    timeout_ms: Optional[int] = None
    tags: Optional[List[str]] = None

    def has_changes(self) -> bool:
        return bool(self.model_dump(exclude_none=True))


class SearchQuery(BaseModel):
    """Parameters for tool discovery."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(default="", alias="q")
    tag: Optional[str] = None
    provider: Optional[str] = None
    max_price_claw: Optional[float] = None
    page: int = 1
    limit: int = 20

    def has_filters(self) -> bool:
        return bool(self.tag or self.provider or self.max_price_claw is not None)


class SearchResult(BaseModel):
    """A page of tools.

    ``total`` is the number of active tools matching the query and filters
    across all pages, not the size of this page.
    """

    tools: List[Tool] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    query: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "tools": [tool.to_dict() for tool in self.tools],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }
        if self.query is not None:
            data["query"] = self.query
        return data
