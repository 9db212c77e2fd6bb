"""Utility modules for agent-tools."""

from agent_tools.utils.logging import get_logger, setup_logging
from agent_tools.utils.config import Config, get_config, load_config, reload_config

__all__ = [
    "get_logger",
    "setup_logging",
    "Config",
    "get_config",
    "load_config",
    "reload_config",
]
