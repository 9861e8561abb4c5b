"""
Configuration management for mcp-lite.
"""

from .settings import (
    Settings,
    LLMSettings,
    LoggingSettings,
    MCPSettings,
    MCPServerSettings,
    TransportKind,
    load_config,
)

__all__ = [
    "Settings",
    "LLMSettings",
    "LoggingSettings",
    "MCPSettings",
    "MCPServerSettings",
    "TransportKind",
    "load_config",
]
