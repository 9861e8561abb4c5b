"""
MCP connectivity for mcp-lite.

This module provides the components for connecting to MCP servers over
stdio, SSE and streamable HTTP, managing their connections, and routing tool
calls to the appropriate server.
"""

from .client_session import McpLiteClientSession
from .hub import ConnectionHub
from .server_connection import ServerConnection
from .transports import TransportFactory, open_transport
from .types import SEP, ResourceDescriptor, ToolDescriptor

__all__ = [
    "ConnectionHub",
    "ServerConnection",
    "McpLiteClientSession",
    "TransportFactory",
    "open_transport",
    "ToolDescriptor",
    "ResourceDescriptor",
    "SEP",
]
