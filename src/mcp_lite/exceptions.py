"""
Exception hierarchy for mcp-lite.
"""

from typing import Optional


class McpLiteError(Exception):
    """Base class for all mcp-lite errors."""


class ConfigurationError(McpLiteError):
    """A server descriptor or LLM selection is missing a required field."""


class ServerConnectionError(McpLiteError, ConnectionError):
    """Opening a transport or discovering a server's tools failed."""

    def __init__(self, server_name: str, message: str):
        super().__init__(f"{server_name}: {message}")
        self.server_name = server_name


class NotConnectedError(McpLiteError):
    """The named server is not registered or its connection is down."""

    def __init__(self, server_name: str):
        super().__init__(f"Server {server_name} not connected")
        self.server_name = server_name


class ToolNotFoundError(McpLiteError):
    def __init__(self, server_name: Optional[str], tool_name: str):
        if server_name:
            super().__init__(f"Tool {tool_name} not found on server {server_name}")
        else:
            super().__init__(f"Tool {tool_name} not found")
        self.server_name = server_name
        self.tool_name = tool_name


class ToolExecutionError(McpLiteError):
    """
    A tool call or resource read reached the server but failed or timed out.

    The underlying exception is available as ``cause`` (and ``__cause__``).
    """

    def __init__(
        self,
        server_name: str,
        target: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
        operation: str = "call tool",
    ):
        detail = message or (str(cause) or type(cause).__name__ if cause else "unknown error")
        super().__init__(f"Failed to {operation} {target} on server {server_name}: {detail}")
        self.server_name = server_name
        self.tool_name = target
        self.cause = cause


class UnknownToolCallError(McpLiteError):
    """Manual resolution referenced a tool call id with no pending match."""

    def __init__(self, tool_call_id: str):
        super().__init__(f"Tool call {tool_call_id} not found")
        self.tool_call_id = tool_call_id


class LLMError(McpLiteError):
    """The LLM vendor API returned an error or an unexpected payload."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
        self.status = status
