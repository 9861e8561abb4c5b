"""
Catalog entries discovered from MCP servers.
"""

from typing import Any, Dict, Optional

from mcp.types import Resource, Tool
from pydantic import BaseModel, Field

SEP = "-"


class ToolDescriptor(BaseModel):
    """A tool advertised by one server."""

    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    server_name: str

    @classmethod
    def from_mcp(cls, tool: Tool, server_name: str) -> "ToolDescriptor":
        return cls(
            name=tool.name,
            description=tool.description,
            input_schema=dict(tool.inputSchema or {}),
            server_name=server_name,
        )

    @property
    def namespaced_name(self) -> str:
        return f"{self.server_name}{SEP}{self.name}"


class ResourceDescriptor(BaseModel):
    """A readable resource advertised by one server."""

    uri: str
    name: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    server_name: str

    @classmethod
    def from_mcp(cls, resource: Resource, server_name: str) -> "ResourceDescriptor":
        return cls(
            uri=str(resource.uri),
            name=resource.name,
            description=resource.description,
            mime_type=resource.mimeType,
            server_name=server_name,
        )
