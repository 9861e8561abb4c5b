"""Shared fixtures: in-process fake MCP servers injected into the hub."""

import inspect
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

import anyio
import pytest
from mcp.types import (
    CallToolResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceResult,
    Resource,
    TextContent,
    TextResourceContents,
    Tool,
)

from mcp_lite.config import MCPServerSettings
from mcp_lite.llm.types import LLMResponse, ToolCall
from mcp_lite.mcp.hub import ConnectionHub


def text_result(text: str, is_error: bool = False) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


class FakeServer:
    """
    Scripted stand-in for an MCP server.

    ``tools`` maps a tool name to a handler receiving the call arguments. A
    handler may be sync or async and may return a string, a CallToolResult, or
    raise.
    """

    def __init__(
        self,
        tools: Optional[Dict[str, Callable[[Dict[str, Any]], Any]]] = None,
        resources: Optional[Dict[str, str]] = None,
        fail_transport: bool = False,
        fail_initialize: bool = False,
        fail_list_tools: bool = False,
        fail_list_resources: bool = False,
        initialize_delay: float = 0,
    ):
        self.tools = tools or {}
        self.resources = resources or {}
        self.fail_transport = fail_transport
        self.fail_initialize = fail_initialize
        self.fail_list_tools = fail_list_tools
        self.fail_list_resources = fail_list_resources
        self.initialize_delay = initialize_delay
        self.calls: List[tuple] = []
        self.transport_opened = 0
        self.transport_closed = 0


class FakeClientSession:
    """Implements the slice of mcp.ClientSession the hub uses."""

    def __init__(self, read_stream: FakeServer, write_stream: Any = None, read_timeout: Any = None):
        self.server = read_stream
        self.server_name: Optional[str] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def initialize(self):
        if self.server.initialize_delay:
            await anyio.sleep(self.server.initialize_delay)
        if self.server.fail_initialize:
            raise RuntimeError("handshake rejected")

    async def list_tools(self) -> ListToolsResult:
        if self.server.fail_list_tools:
            raise RuntimeError("tools/list failed")
        return ListToolsResult(
            tools=[
                Tool(
                    name=name,
                    description=f"{name} tool",
                    inputSchema={"type": "object", "properties": {}},
                )
                for name in self.server.tools
            ]
        )

    async def list_resources(self) -> ListResourcesResult:
        if self.server.fail_list_resources:
            raise RuntimeError("Method not found")
        return ListResourcesResult(
            resources=[Resource(uri=uri, name=uri.rsplit("/", 1)[-1]) for uri in self.server.resources]
        )

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> CallToolResult:
        self.server.calls.append((name, arguments))
        result = self.server.tools[name](arguments)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return text_result(result)
        return result

    async def read_resource(self, uri) -> ReadResourceResult:
        return ReadResourceResult(
            contents=[TextResourceContents(uri=uri, text=self.server.resources[str(uri)])]
        )


def fake_transport_factory(servers: Dict[str, FakeServer]):
    """Transport factory that hands the FakeServer keyed by ``command`` to the session."""

    @asynccontextmanager
    async def transport(config: MCPServerSettings):
        server = servers[config.command]
        if server.fail_transport:
            raise OSError(f"cannot spawn {config.command}")
        server.transport_opened += 1
        try:
            yield server, None
        finally:
            server.transport_closed += 1

    return transport


def server_config(name: str, command: Optional[str] = None, **kwargs) -> MCPServerSettings:
    return MCPServerSettings(name=name, command=command or name, **kwargs)


def tool_call_response(name: str, arguments: str = "{}", call_id: Optional[str] = None) -> LLMResponse:
    extra = {"id": call_id} if call_id else {}
    return LLMResponse(content="", tool_calls=[ToolCall(name=name, arguments=arguments, **extra)])


@pytest.fixture
def fake_servers() -> Dict[str, FakeServer]:
    return {}


@pytest.fixture
def make_hub(fake_servers):
    """Build (but do not enter) a ConnectionHub wired to ``fake_servers``."""

    def _make(**kwargs) -> ConnectionHub:
        kwargs.setdefault("connect_timeout", 5)
        kwargs.setdefault("close_timeout", 1)
        return ConnectionHub(
            transport_factory=fake_transport_factory(fake_servers),
            client_session_factory=FakeClientSession,
            **kwargs,
        )

    return _make
