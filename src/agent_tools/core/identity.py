"""
Identifier derivation for registry entities.

Tool IDs are a pure function of ``(name, version, provider_id)`` so a
retried registration always derives the same ID without touching the
database.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Any

TOOL_DID_PREFIX = "did:claw:tool:"
INVOCATION_PREFIX = "inv_"
PAYLOAD_HASH_PREFIX = "sha256:"

# Identity used when a request carries no credential.
ANONYMOUS_PROVIDER_ID = "did:claw:agent:anonymous"


def make_tool_id(name: str, version: str, provider_id: str) -> str:
    """Derive the deterministic DID for a tool."""
    digest = hashlib.sha256(f"{name}@{version}#{provider_id}".encode("utf-8")).hexdigest()
    return TOOL_DID_PREFIX + digest[:32]


def hash_payload(payload: Any) -> str:
    """
    Digest a JSON-serialisable payload.

    Key order is whatever the caller's mapping yields, so the result is an
    opaque audit token rather than a canonical content hash.
    """
    encoded = json.dumps(payload, default=str).encode("utf-8")
    return PAYLOAD_HASH_PREFIX + hashlib.sha256(encoded).hexdigest()


def new_invocation_id() -> str:
    return INVOCATION_PREFIX + str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
