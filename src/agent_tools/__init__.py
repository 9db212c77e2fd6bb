"""
Agent Tools - registry for agent-offered tools.

Providers register versioned, schema-described tools; consumers discover
them through full-text search and the registry keeps an audit trail of
invocations.
"""

__version__ = "0.1.0"
__description__ = "Tool registry for autonomous agents"

# Public API
from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import RegistryError
from agent_tools.core.models import Invocation, Provider, Tool
from agent_tools.core.registry import Registry

__all__ = [
    "__version__",
    "__description__",
    "CallContext",
    "Invocation",
    "Provider",
    "Registry",
    "RegistryError",
    "Tool",
]
