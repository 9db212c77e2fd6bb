"""
Validation utilities for registry requests.

Each function either returns a normalised value or raises
``ValidationError``; the registry engine calls them before touching the
store.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from agent_tools.core.exceptions import ValidationError
from agent_tools.core.models import (
    DEFAULT_TIMEOUT_MS,
    Pricing,
    PricingModel,
    Provider,
    RegisterToolRequest,
    ToolSchema,
    ToolUpdate,
)


def validate_decimal_amount(value: Optional[str], field: str) -> Optional[str]:
    """
    Validate a non-negative decimal string.

    Args:
        value: Decimal string or None
        field: Field name used in the error message

    Returns:
        The stripped string, or None when empty

    Raises:
        ValidationError: If the value is not a non-negative decimal
    """
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal string", details={"value": text})
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative decimal", details={"value": text})
    return text


def _parse_document(document: Any, side: str) -> Any:
    if isinstance(document, (bytes, bytearray)):
        document = document.decode("utf-8", errors="replace")
    if isinstance(document, str):
        try:
            return json.loads(document)
        except json.JSONDecodeError as e:
            raise ValidationError(f"invalid {side} schema: {e.msg}", error_code="INVALID_SCHEMA")
    return document


def validate_tool_schema(schema: ToolSchema) -> ToolSchema:
    """
    Check that schema documents are well-formed structured data.

    The input document is mandatory; an absent or empty output document
    is allowed. Documents are not checked against a schema-of-schemas.
    """
    if schema.input is None or (isinstance(schema.input, str) and not schema.input.strip()):
        raise ValidationError("invalid input schema: document is required", error_code="INVALID_SCHEMA")
    input_doc = _parse_document(schema.input, "input")

    output_doc = schema.output
    if isinstance(output_doc, str) and not output_doc.strip():
        output_doc = None
    if output_doc is not None:
        output_doc = _parse_document(output_doc, "output")

    try:
        json.dumps(input_doc)
        json.dumps(output_doc)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"schema is not serialisable: {e}", error_code="INVALID_SCHEMA")

    return ToolSchema(input=input_doc, output=output_doc)


def validate_pricing(pricing: Optional[Pricing]) -> Pricing:
    """Default missing pricing to free and check the amount."""
    if pricing is None:
        return Pricing(model=PricingModel.FREE)
    amount = validate_decimal_amount(pricing.amount_claw, "pricing.amount_claw")
    return Pricing(model=pricing.model, amount_claw=amount)


def normalize_timeout(timeout_ms: Optional[int]) -> int:
    """Non-positive or missing timeouts fall back to the default."""
    if timeout_ms is None or timeout_ms <= 0:
        return DEFAULT_TIMEOUT_MS
    return int(timeout_ms)


def normalize_tags(tags: Optional[list]) -> list:
    """Strip tags, drop empties and duplicates, keep first-seen order."""
    seen = []
    for tag in tags or []:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def validate_register_tool_request(request: RegisterToolRequest) -> RegisterToolRequest:
    """
    Validate a registration request and apply server-side defaults.

    Returns:
        A new, normalised request

    Raises:
        ValidationError: If a required field is missing or a document is malformed
    """
    name = request.name.strip()
    version = request.version.strip()
    endpoint = request.endpoint.strip()

    if not name:
        raise ValidationError("name is required", error_code="INVALID_SCHEMA")
    if not version:
        raise ValidationError("version is required", error_code="INVALID_SCHEMA")
    if not endpoint:
        raise ValidationError("endpoint is required", error_code="INVALID_SCHEMA")
    if not request.provider_id or not request.provider_id.strip():
        raise ValidationError("provider id is required", error_code="INVALID_SCHEMA")

    return request.model_copy(update={
        "name": name,
        "version": version,
        "endpoint": endpoint,
        "provider_id": request.provider_id.strip(),
        "tool_schema": validate_tool_schema(request.tool_schema),
        "pricing": validate_pricing(request.pricing),
        "timeout_ms": normalize_timeout(request.timeout_ms),
        "tags": normalize_tags(request.tags),
    })


def validate_tool_update(update: ToolUpdate) -> ToolUpdate:
    """Validate an owner edit; only fields that were supplied are checked."""
    if not update.has_changes():
        raise ValidationError("update contains no changes")

    changes = {}
    if update.endpoint is not None:
        endpoint = update.endpoint.strip()
        if not endpoint:
            raise ValidationError("endpoint cannot be empty")
        changes["endpoint"] = endpoint
    if update.pricing is not None:
        changes["pricing"] = validate_pricing(update.pricing)
    if update.timeout_ms is not None:
        changes["timeout_ms"] = normalize_timeout(update.timeout_ms)
    if update.tags is not None:
        changes["tags"] = normalize_tags(update.tags)
    return update.model_copy(update=changes)


def validate_provider(provider: Provider) -> Provider:
    """
    Validate an explicit provider registration.

    Raises:
        ValidationError: If id, endpoint or pubkey is missing, or the stake
            is not a non-negative decimal
    """
    if not provider.id or not provider.id.strip():
        raise ValidationError("provider id is required")
    if not provider.endpoint or not provider.endpoint.strip():
        raise ValidationError("endpoint is required")
    if not provider.pubkey or not provider.pubkey.strip():
        raise ValidationError("pubkey is required")

    stake = validate_decimal_amount(provider.stake_claw, "stake_claw") or "0"
    return provider.model_copy(update={
        "id": provider.id.strip(),
        "endpoint": provider.endpoint.strip(),
        "pubkey": provider.pubkey.strip(),
        "stake_claw": stake,
    })


def coerce_model(model_cls, value: Any, error_code: Optional[str] = None):
    """
    Accept either a model instance or a decoded JSON mapping.

    Raises:
        ValidationError: If the mapping does not fit the model
    """
    if isinstance(value, model_cls):
        return value
    if not isinstance(value, dict):
        raise ValidationError(
            f"expected an object for {model_cls.__name__}",
            error_code=error_code,
            details={"type": type(value).__name__},
        )
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid value")
        raise ValidationError(
            f"{location}: {message}" if location else message,
            error_code=error_code,
            details={"errors": e.errors(include_url=False, include_input=False, include_context=False)},
        )
