"""
A single long-lived MCP server connection and its discovered catalogs.
"""

from datetime import timedelta
from typing import AsyncContextManager, Callable, List, Optional

import anyio
from anyio import CancelScope, Event
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession

from mcp_lite.config import MCPServerSettings
from mcp_lite.exceptions import ServerConnectionError
from mcp_lite.mcp.transports import TransportStreams
from mcp_lite.mcp.types import ResourceDescriptor, ToolDescriptor
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

ClientSessionFactory = Callable[
    [MemoryObjectReceiveStream, MemoryObjectSendStream, Optional[timedelta]],
    ClientSession,
]


class ServerConnection:
    """
    Represents a long-lived MCP server connection.

    Includes:
    - The ClientSession to the server
    - The transport streams (via stdio/sse/http)
    - The tool and resource catalogs discovered at connect time

    The transport and session are entered and exited inside
    ``_server_lifecycle_task`` so that callers in other tasks can open and
    close the connection.
    """

    def __init__(
        self,
        server_name: str,
        server_config: MCPServerSettings,
        transport_context_factory: Callable[[], AsyncContextManager[TransportStreams]],
        client_session_factory: ClientSessionFactory,
    ):
        self.server_name = server_name
        self.server_config = server_config
        self.session: Optional[ClientSession] = None
        self.tools: List[ToolDescriptor] = []
        self.resources: List[ResourceDescriptor] = []
        self.error: Optional[BaseException] = None
        self.initialized = False
        self.discovered = False
        self._client_session_factory = client_session_factory
        self._transport_context_factory = transport_context_factory
        self._cancel_scope = CancelScope()

        # Signal that session is up and initialized (or failed trying)
        self._initialized_event = Event()
        # Signal we want to shut down
        self._shutdown_event = Event()
        # Signal the lifecycle task has released the transport
        self._closed_event = Event()

    @property
    def connected(self) -> bool:
        """True while the session is live and its catalogs are valid."""
        return (
            self.discovered
            and self.session is not None
            and not self._shutdown_event.is_set()
            and not self._closed_event.is_set()
        )

    @property
    def closed(self) -> bool:
        return self._closed_event.is_set()

    def has_tool(self, tool_name: str) -> bool:
        return any(tool.name == tool_name for tool in self.tools)

    def request_shutdown(self) -> None:
        """
        Request the server to shut down. Signals the server lifecycle task to exit.
        """
        self._shutdown_event.set()

    async def wait_for_shutdown_request(self) -> None:
        await self._shutdown_event.wait()

    async def initialize_session(self) -> None:
        """
        Perform the MCP initialize handshake.
        Must be called within the lifecycle task.
        """
        await self.session.initialize()
        self.initialized = True
        self._initialized_event.set()

    async def wait_for_initialized(self) -> None:
        """
        Wait until the session is initialized or the lifecycle task failed.
        """
        await self._initialized_event.wait()

    def create_session(
        self,
        read_stream: MemoryObjectReceiveStream,
        send_stream: MemoryObjectSendStream,
    ) -> ClientSession:
        """
        Create a new session instance for this server connection.
        """
        read_timeout = timedelta(seconds=self.server_config.timeout)

        session = self._client_session_factory(read_stream, send_stream, read_timeout)

        if hasattr(session, "server_name"):
            session.server_name = self.server_name

        self.session = session

        return session

    async def discover(self) -> None:
        """
        Fetch the tool and resource catalogs.

        Tool discovery is mandatory; resource discovery failures degrade to an
        empty catalog since many servers do not implement resources.

        Raises:
            ServerConnectionError: If the tools/list request fails.
        """
        try:
            tools_result = await self.session.list_tools()
        except Exception as exc:
            raise ServerConnectionError(
                self.server_name, f"Tool discovery failed: {exc}"
            ) from exc

        try:
            resources_result = await self.session.list_resources()
            resources = resources_result.resources or []
        except Exception as exc:
            logger.debug(f"{self.server_name}: Resource discovery unavailable: {exc}")
            resources = []

        self.tools = [
            ToolDescriptor.from_mcp(tool, self.server_name)
            for tool in tools_result.tools or []
        ]
        self.resources = [
            ResourceDescriptor.from_mcp(resource, self.server_name)
            for resource in resources
        ]
        self.discovered = True

    async def close(self, timeout: float) -> None:
        """
        Shut the connection down and wait until the transport is released.

        If the lifecycle task does not exit within ``timeout`` seconds (for
        example because it is stuck opening the transport) it is cancelled.
        """
        self.request_shutdown()
        with anyio.move_on_after(timeout):
            await self._closed_event.wait()
            return

        logger.warning(f"{self.server_name}: Close timed out after {timeout}s, cancelling")
        self._cancel_scope.cancel()
        await self._closed_event.wait()


async def _server_lifecycle_task(server_conn: ServerConnection) -> None:
    """
    Manage the lifecycle of a single server connection.
    Runs inside the ConnectionHub's shared TaskGroup and never raises, so a
    failing server cannot tear down its siblings.
    """
    server_name = server_conn.server_name
    try:
        with server_conn._cancel_scope:
            transport_context = server_conn._transport_context_factory()

            async with transport_context as (read_stream, write_stream):
                server_conn.create_session(read_stream, write_stream)

                async with server_conn.session:
                    await server_conn.initialize_session()

                    # Wait until we're asked to shut down
                    await server_conn.wait_for_shutdown_request()
                    logger.debug(f"{server_name}: Closing client session")
    except Exception as exc:
        server_conn.error = exc
        logger.error(
            f"{server_name}: Lifecycle task encountered an error: {exc}", exc_info=True
        )
    finally:
        if not server_conn._shutdown_event.is_set() and server_conn.discovered:
            logger.warning(f"{server_name}: Connection ended unexpectedly")
        # Unblock anyone waiting on initialization or close
        server_conn._initialized_event.set()
        server_conn._closed_event.set()
