"""
API models for agent-tools REST endpoints.

Entity bodies reuse the core models' ``to_dict``; these cover the
transport-only envelopes.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Machine-readable error."""

    code: str = Field(description="Error code identifier")
    message: str = Field(description="Human readable message")


class ErrorResponse(BaseModel):
    """Envelope for every non-2xx response."""

    error: ErrorDetail

    @classmethod
    def build(cls, code: str, message: str) -> Dict[str, Any]:
        return cls(error=ErrorDetail(code=code, message=message)).model_dump()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="ok or unavailable")
    version: str = Field(description="agent-tools version")
    database: Dict[str, Any] = Field(default_factory=dict, description="Store details")


class ProviderListResponse(BaseModel):
    """All registered providers."""

    providers: List[Dict[str, Any]] = Field(default_factory=list)
