"""
Transport selection for MCP server connections.
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable, Tuple

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.client.streamable_http import streamablehttp_client

from mcp_lite.config import MCPServerSettings, TransportKind
from mcp_lite.exceptions import ConfigurationError
from mcp_lite.utils.logging import get_logger
from mcp_lite.utils.stdio import stdio_client_with_rich_stderr

logger = get_logger(__name__)

TransportStreams = Tuple[MemoryObjectReceiveStream, MemoryObjectSendStream]

TransportFactory = Callable[[MCPServerSettings], AsyncContextManager[TransportStreams]]
"""
Opens the channel to one server and yields its (read_stream, write_stream) pair.
"""


@asynccontextmanager
async def _streamable_http_transport(url: str) -> AsyncGenerator[TransportStreams, None]:
    # The third element is a session-id getter we have no use for.
    async with streamablehttp_client(url) as (read_stream, write_stream, _):
        yield read_stream, write_stream


def open_transport(config: MCPServerSettings) -> AsyncContextManager[TransportStreams]:
    """
    Build the transport context for a server based on its transport kind.

    Args:
        config: The server descriptor.

    Returns:
        An async context manager yielding (read_stream, write_stream).

    Raises:
        ConfigurationError: If the descriptor lacks the field its transport needs.
    """
    config.validate_transport()

    if config.transport == TransportKind.STDIO:
        server_params = StdioServerParameters(
            command=config.command,
            args=config.args,
            env={**get_default_environment(), **(config.env or {})},
        )
        logger.debug(f"{config.name}: Opening stdio transport: {config.command} {' '.join(config.args)}")
        return stdio_client_with_rich_stderr(server_params)
    elif config.transport == TransportKind.SSE:
        logger.debug(f"{config.name}: Opening SSE transport: {config.url}")
        return sse_client(config.url)
    elif config.transport == TransportKind.HTTP:
        logger.debug(f"{config.name}: Opening streamable HTTP transport: {config.url}")
        return _streamable_http_transport(config.url)

    raise ConfigurationError(f"Unsupported transport: {config.transport}")
