"""
Manages many concurrent MCP server connections and routes calls between them.
"""

from fnmatch import fnmatch
from typing import Any, Dict, Iterable, List, Optional, Tuple

import anyio
from anyio import Lock, create_task_group
from anyio.abc import TaskGroup
from mcp.types import CallToolResult
from pydantic import AnyUrl

from mcp_lite.config import MCPServerSettings
from mcp_lite.exceptions import (
    NotConnectedError,
    ServerConnectionError,
    ToolExecutionError,
    ToolNotFoundError,
)
from mcp_lite.mcp.client_session import McpLiteClientSession
from mcp_lite.mcp.server_connection import (
    ClientSessionFactory,
    ServerConnection,
    _server_lifecycle_task,
)
from mcp_lite.mcp.transports import TransportFactory, open_transport
from mcp_lite.mcp.types import SEP, ResourceDescriptor, ToolDescriptor
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)


def _unwrap_single(error: Optional[BaseException]) -> Optional[BaseException]:
    """Reduce nested single-member exception groups to the exception they hold."""
    while error is not None:
        members = getattr(error, "exceptions", None)
        if not isinstance(members, tuple) or len(members) != 1:
            break
        error = members[0]
    return error


class ConnectionHub:
    """
    Owns one ServerConnection per logical server name.

    Use as an async context manager; the hub's task group hosts every
    server's lifecycle task::

        async with ConnectionHub() as hub:
            await hub.add_server(settings)
            result = await hub.call_tool("fetch", "get", {"url": "..."})

    Sessions are inserted into the map only after discovery finished and are
    popped from it before they are closed, so readers never see a half-built
    or half-closed session.
    """

    def __init__(
        self,
        connect_timeout: float = 30,
        transport_factory: TransportFactory = open_transport,
        client_session_factory: ClientSessionFactory = McpLiteClientSession,
        close_timeout: float = 5,
    ):
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout
        self._transport_factory = transport_factory
        self._client_session_factory = client_session_factory
        self._connections: Dict[str, ServerConnection] = {}
        self._lock = Lock()
        self._tg: Optional[TaskGroup] = None

    async def __aenter__(self) -> "ConnectionHub":
        self._tg = create_task_group()
        await self._tg.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        logger.debug("ConnectionHub: shutting down all server tasks...")
        try:
            await self.disconnect_all()
        finally:
            tg, self._tg = self._tg, None
            if tg:
                # Every lifecycle task has finished; the body's own exception
                # propagates unwrapped.
                tg.cancel_scope.cancel()
                await tg.__aexit__(None, None, None)

    def _require_running(self) -> TaskGroup:
        if not self._tg:
            raise RuntimeError(
                "ConnectionHub must be used inside an async context (i.e. 'async with' or after __aenter__)."
            )
        return self._tg

    async def add_server(self, config: MCPServerSettings) -> ServerConnection:
        """
        Connect to a server and register it under ``config.name``.

        An existing session under the same name is closed and discarded first,
        even if the new connection then fails.

        Args:
            config: The server descriptor.

        Returns:
            The connected ServerConnection.

        Raises:
            ConfigurationError: If the descriptor is missing its command or URL.
            ServerConnectionError: If the transport, handshake or tool discovery
                fails, or the connect timeout expires.
        """
        tg = self._require_running()
        server_name = config.name
        if not server_name:
            raise ValueError("Server descriptor must have a name")

        async with self._lock:
            existing = self._connections.pop(server_name, None)
            if existing:
                logger.info(f"{server_name}: Replacing existing connection")
                await self._close_connection(existing)

            config.validate_transport()
            logger.debug(f"{server_name}: Found server configuration=", data=config.model_dump())

            server_conn = ServerConnection(
                server_name=server_name,
                server_config=config,
                transport_context_factory=lambda: self._transport_factory(config),
                client_session_factory=self._client_session_factory,
            )
            tg.start_soon(_server_lifecycle_task, server_conn)

            try:
                with anyio.fail_after(self.connect_timeout):
                    await server_conn.wait_for_initialized()
                    if not server_conn.initialized:
                        cause = _unwrap_single(server_conn.error)
                        raise ServerConnectionError(
                            server_name,
                            f"Failed to initialize server: {cause or 'connection closed'}",
                        ) from cause
                    await server_conn.discover()
            except TimeoutError as e:
                await self._close_connection(server_conn)
                raise ServerConnectionError(
                    server_name, f"Connection timed out after {self.connect_timeout}s"
                ) from e
            except ServerConnectionError:
                await self._close_connection(server_conn)
                raise
            except Exception as e:
                await self._close_connection(server_conn)
                raise ServerConnectionError(server_name, str(e)) from e

            self._connections[server_name] = server_conn

        logger.info(
            f"{server_name}: Connected with {len(server_conn.tools)} tools "
            f"and {len(server_conn.resources)} resources"
        )
        return server_conn

    async def add_servers(
        self, configs: Iterable[MCPServerSettings]
    ) -> Dict[str, Exception]:
        """
        Connect to several servers in order, skipping disabled ones.

        Returns:
            A mapping of server name to the exception that stopped it from
            connecting. Successful servers are not included.
        """
        errors: Dict[str, Exception] = {}
        for config in configs:
            if config.disabled:
                logger.debug(f"{config.name}: Disabled, skipping")
                continue
            try:
                await self.add_server(config)
            except Exception as e:
                logger.error(f"{config.name}: Failed to connect: {e}")
                errors[config.name] = e
        return errors

    async def remove_server(self, server_name: str) -> None:
        """
        Disconnect a server. Does nothing if no such server is registered.
        """
        async with self._lock:
            server_conn = self._connections.pop(server_name, None)
            if not server_conn:
                logger.debug(f"{server_name}: No connection found. Skipping removal")
                return
            logger.info(f"{server_name}: Disconnecting...")
            await self._close_connection(server_conn)

    async def disconnect_all(self) -> None:
        """
        Disconnect all servers concurrently and clear the hub.
        """
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            if not connections:
                return
            logger.info(f"Disconnecting {len(connections)} server connection(s)...")
            async with create_task_group() as tg:
                for conn in connections:
                    tg.start_soon(self._close_connection, conn)
        logger.info("All server connections closed.")

    async def _close_connection(self, server_conn: ServerConnection) -> None:
        try:
            with anyio.CancelScope(shield=True):
                await server_conn.close(self.close_timeout)
        except Exception as e:
            logger.error(f"{server_conn.server_name}: Error while closing: {e}", exc_info=True)

    def get_server_names(self) -> List[str]:
        return list(self._connections.keys())

    def get_server(self, server_name: str) -> Optional[ServerConnection]:
        return self._connections.get(server_name)

    def _connected(self) -> List[ServerConnection]:
        return [conn for conn in self._connections.values() if conn.connected]

    def get_available_tools(self, namespaced: bool = False) -> List[ToolDescriptor]:
        """
        Snapshot of the tools of every connected server, in registration order.

        Args:
            namespaced: Rename each tool to ``<server>-<tool>``.
        """
        tools = []
        for conn in self._connected():
            for tool in conn.tools:
                if namespaced:
                    tools.append(
                        tool.model_copy(update={"name": tool.namespaced_name}, deep=True)
                    )
                else:
                    tools.append(tool.model_copy(deep=True))
        return tools

    def get_available_resources(self) -> List[ResourceDescriptor]:
        return [
            resource.model_copy(deep=True)
            for conn in self._connected()
            for resource in conn.resources
        ]

    def resolve_tool_name(self, name: str) -> Optional[Tuple[str, str]]:
        """
        Split a namespaced tool name into ``(server_name, tool_name)``.

        Server names may contain the separator themselves, so the longest
        registered server name that prefixes ``name`` wins.
        """
        best: Optional[str] = None
        for server_name in self._connections:
            prefix = f"{server_name}{SEP}"
            if name.startswith(prefix) and len(name) > len(prefix):
                if best is None or len(server_name) > len(best):
                    best = server_name
        if best is None:
            return None
        return best, name[len(best) + len(SEP):]

    def is_auto_approved(self, tool_name: str) -> bool:
        """
        True when a connected server exposing ``tool_name`` lists a matching
        ``auto_approve`` pattern. Accepts plain and namespaced names.
        """
        candidates: List[Tuple[ServerConnection, str]] = [
            (conn, tool_name) for conn in self._connected() if conn.has_tool(tool_name)
        ]
        resolved = self.resolve_tool_name(tool_name)
        if resolved:
            conn = self._connections[resolved[0]]
            if conn.connected and conn.has_tool(resolved[1]):
                candidates.append((conn, resolved[1]))

        return any(
            fnmatch(local_name, pattern)
            for conn, local_name in candidates
            for pattern in conn.server_config.auto_approve
        )

    def _get_connected(self, server_name: str) -> ServerConnection:
        server_conn = self._connections.get(server_name)
        if not server_conn or not server_conn.connected:
            raise NotConnectedError(server_name)
        return server_conn

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> CallToolResult:
        """
        Call a tool on a specific server.

        Raises:
            NotConnectedError: If the server is unknown or disconnected.
            ToolNotFoundError: If the server does not advertise the tool.
            ToolExecutionError: If the call fails in transport or times out.
        """
        server_conn = self._get_connected(server_name)
        if not server_conn.has_tool(tool_name):
            raise ToolNotFoundError(server_name, tool_name)

        timeout = server_conn.server_config.timeout
        logger.debug(
            f"{server_name}: Calling tool {tool_name}", data={"arguments": arguments}
        )
        try:
            with anyio.fail_after(timeout):
                return await server_conn.session.call_tool(tool_name, arguments or {})
        except TimeoutError as e:
            raise ToolExecutionError(
                server_name, tool_name, cause=e, message=f"Timed out after {timeout}s"
            ) from e
        except Exception as e:
            raise ToolExecutionError(server_name, tool_name, cause=e) from e

    async def read_resource(self, server_name: str, uri: str) -> List[Any]:
        """
        Read a resource from a specific server.

        Returns:
            The resource's content entries (text or blob).

        Raises:
            NotConnectedError: If the server is unknown or disconnected.
            ToolExecutionError: If the read fails in transport or times out.
        """
        server_conn = self._get_connected(server_name)
        timeout = server_conn.server_config.timeout
        try:
            with anyio.fail_after(timeout):
                result = await server_conn.session.read_resource(AnyUrl(uri))
        except TimeoutError as e:
            raise ToolExecutionError(
                server_name,
                uri,
                cause=e,
                message=f"Timed out after {timeout}s",
                operation="read resource",
            ) from e
        except Exception as e:
            raise ToolExecutionError(
                server_name, uri, cause=e, operation="read resource"
            ) from e
        return list(result.contents)
