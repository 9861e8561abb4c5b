"""Tests for ConnectionHub."""

from contextlib import asynccontextmanager

import anyio
import pytest
from mcp.types import CallToolResult

from conftest import FakeClientSession, FakeServer, server_config, text_result
from mcp_lite.exceptions import (
    ConfigurationError,
    LLMError,
    NotConnectedError,
    ServerConnectionError,
    ToolExecutionError,
    ToolNotFoundError,
)
from mcp_lite.config import MCPServerSettings, TransportKind
from mcp_lite.mcp import ConnectionHub


def _names(tools):
    return sorted(tool.name for tool in tools)


class TestServerLifecycle:
    """Connect, replace and remove servers."""

    @pytest.mark.asyncio
    async def test_available_tools_is_union_of_connected_servers(self, make_hub, fake_servers):
        fake_servers["weather"] = FakeServer(tools={"forecast": str, "alerts": str})
        fake_servers["files"] = FakeServer(tools={"read_file": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("weather"))
            await hub.add_server(server_config("files"))

            assert hub.get_server_names() == ["weather", "files"]
            assert _names(hub.get_available_tools()) == ["alerts", "forecast", "read_file"]
            assert {tool.server_name for tool in hub.get_available_tools()} == {"weather", "files"}

            await hub.remove_server("weather")

            assert _names(hub.get_available_tools()) == ["read_file"]
            assert fake_servers["weather"].transport_closed == 1

    @pytest.mark.asyncio
    async def test_catalog_is_a_snapshot(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))
            tools = hub.get_available_tools()
            tools[0].name = "mutated"

            assert _names(hub.get_available_tools()) == ["t"]

    @pytest.mark.asyncio
    async def test_replace_disconnects_old_session(self, make_hub, fake_servers):
        fake_servers["old"] = FakeServer(tools={"legacy_tool": str})
        fake_servers["new"] = FakeServer(tools={"fresh_tool": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("srv", command="old"))
            await hub.add_server(server_config("srv", command="new"))

            assert _names(hub.get_available_tools()) == ["fresh_tool"]
            assert fake_servers["old"].transport_closed == 1
            assert hub.get_server_names() == ["srv"]

    @pytest.mark.asyncio
    async def test_replace_tears_down_old_session_even_when_reconnect_fails(
        self, make_hub, fake_servers
    ):
        fake_servers["old"] = FakeServer(tools={"legacy_tool": str})
        fake_servers["broken"] = FakeServer(fail_transport=True)

        async with make_hub() as hub:
            await hub.add_server(server_config("srv", command="old"))

            with pytest.raises(ServerConnectionError):
                await hub.add_server(server_config("srv", command="broken"))

            assert hub.get_available_tools() == []
            assert hub.get_server("srv") is None
            assert fake_servers["old"].transport_closed == 1

    @pytest.mark.asyncio
    async def test_handshake_failure_is_not_registered(self, make_hub, fake_servers):
        fake_servers["bad"] = FakeServer(tools={"t": str}, fail_initialize=True)

        async with make_hub() as hub:
            with pytest.raises(ServerConnectionError) as exc_info:
                await hub.add_server(server_config("bad"))

            assert "handshake rejected" in str(exc_info.value)
            assert hub.get_server_names() == []

    @pytest.mark.asyncio
    async def test_tool_discovery_failure_closes_connection(self, make_hub, fake_servers):
        fake_servers["bad"] = FakeServer(tools={"t": str}, fail_list_tools=True)

        async with make_hub() as hub:
            with pytest.raises(ServerConnectionError):
                await hub.add_server(server_config("bad"))

            assert hub.get_server_names() == []
            assert fake_servers["bad"].transport_closed == 1

    @pytest.mark.asyncio
    async def test_resource_discovery_failure_degrades_to_empty(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(
            tools={"t": str}, resources={"file:///notes.txt": "x"}, fail_list_resources=True
        )

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))

            assert _names(hub.get_available_tools()) == ["t"]
            assert hub.get_available_resources() == []

    @pytest.mark.asyncio
    async def test_connect_timeout(self, make_hub, fake_servers):
        fake_servers["slow"] = FakeServer(initialize_delay=10)

        async with make_hub(connect_timeout=0.1, close_timeout=0.1) as hub:
            with pytest.raises(ServerConnectionError) as exc_info:
                await hub.add_server(server_config("slow"))

            assert "timed out" in str(exc_info.value)
            assert hub.get_server_names() == []

    @pytest.mark.asyncio
    async def test_missing_command_is_a_configuration_error(self, make_hub):
        async with make_hub() as hub:
            with pytest.raises(ConfigurationError):
                await hub.add_server(MCPServerSettings(name="x", transport=TransportKind.STDIO))
            with pytest.raises(ConfigurationError):
                await hub.add_server(MCPServerSettings(name="y", transport=TransportKind.SSE))

    @pytest.mark.asyncio
    async def test_add_servers_collects_failures_and_skips_disabled(self, make_hub, fake_servers):
        fake_servers["good"] = FakeServer(tools={"t": str})
        fake_servers["bad"] = FakeServer(fail_transport=True)
        fake_servers["off"] = FakeServer(tools={"hidden": str})

        async with make_hub() as hub:
            errors = await hub.add_servers(
                [
                    server_config("bad"),
                    server_config("good"),
                    server_config("off", disabled=True),
                ]
            )

            assert list(errors) == ["bad"]
            assert isinstance(errors["bad"], ServerConnectionError)
            assert hub.get_server_names() == ["good"]
            assert fake_servers["off"].transport_opened == 0

    @pytest.mark.asyncio
    async def test_remove_unknown_server_is_noop(self, make_hub):
        async with make_hub() as hub:
            await hub.remove_server("nope")
            assert hub.get_server_names() == []

    @pytest.mark.asyncio
    async def test_exit_disconnects_everything(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": str})
        fake_servers["b"] = FakeServer(tools={"u": str})

        async with make_hub() as hub:
            await hub.add_servers([server_config("a"), server_config("b")])

        assert hub.get_server_names() == []
        assert fake_servers["a"].transport_closed == 1
        assert fake_servers["b"].transport_closed == 1

    @pytest.mark.asyncio
    async def test_use_outside_context_raises(self, make_hub):
        hub = make_hub()
        with pytest.raises(RuntimeError):
            await hub.add_server(server_config("a"))


class TestRouting:
    """Tool calls and resource reads."""

    @pytest.mark.asyncio
    async def test_call_tool(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"greet": lambda args: f"hello {args['name']}"})

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))
            result = await hub.call_tool("a", "greet", {"name": "ada"})

        assert isinstance(result, CallToolResult)
        assert result.content[0].text == "hello ada"
        assert fake_servers["a"].calls == [("greet", {"name": "ada"})]

    @pytest.mark.asyncio
    async def test_call_tool_on_unknown_server(self, make_hub):
        async with make_hub() as hub:
            with pytest.raises(NotConnectedError):
                await hub.call_tool("ghost", "t", {})

    @pytest.mark.asyncio
    async def test_call_unknown_tool(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))
            with pytest.raises(ToolNotFoundError):
                await hub.call_tool("a", "missing", {})

    @pytest.mark.asyncio
    async def test_call_tool_failure_is_wrapped(self, make_hub, fake_servers):
        def boom(args):
            raise RuntimeError("disk full")

        fake_servers["a"] = FakeServer(tools={"write": boom})

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))
            with pytest.raises(ToolExecutionError) as exc_info:
                await hub.call_tool("a", "write", {})

        assert exc_info.value.tool_name == "write"
        assert exc_info.value.server_name == "a"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert "disk full" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_call_tool_timeout(self, make_hub, fake_servers):
        async def slow(args):
            await anyio.sleep(5)
            return "late"

        fake_servers["a"] = FakeServer(tools={"slow": slow})

        async with make_hub() as hub:
            await hub.add_server(server_config("a", timeout=0.05))
            with pytest.raises(ToolExecutionError) as exc_info:
                await hub.call_tool("a", "slow", {})

        assert "Timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_tool_error_flag_is_returned_not_raised(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": lambda args: text_result("bad input", is_error=True)})

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))
            result = await hub.call_tool("a", "t", {})

        assert result.isError is True

    @pytest.mark.asyncio
    async def test_read_resource(self, make_hub, fake_servers):
        fake_servers["docs"] = FakeServer(resources={"file:///guide.md": "# Guide"})

        async with make_hub() as hub:
            await hub.add_server(server_config("docs"))
            resources = hub.get_available_resources()
            contents = await hub.read_resource("docs", "file:///guide.md")

        assert [resource.uri for resource in resources] == ["file:///guide.md"]
        assert resources[0].server_name == "docs"
        assert contents[0].text == "# Guide"

    @pytest.mark.asyncio
    async def test_concurrent_calls_on_one_session(self, make_hub, fake_servers):
        async def echo(args):
            await anyio.sleep(0.01 * args["n"])
            return str(args["n"])

        fake_servers["a"] = FakeServer(tools={"echo": echo})
        results = {}

        async with make_hub() as hub:
            await hub.add_server(server_config("a"))

            async def call(n):
                results[n] = await hub.call_tool("a", "echo", {"n": n})

            async with anyio.create_task_group() as tg:
                for n in (3, 1, 2):
                    tg.start_soon(call, n)

        assert {n: r.content[0].text for n, r in results.items()} == {1: "1", 2: "2", 3: "3"}


class TestNamespacing:
    """Namespaced tool names and auto-approval."""

    @pytest.mark.asyncio
    async def test_namespaced_catalog_and_resolution(self, make_hub, fake_servers):
        fake_servers["web"] = FakeServer(tools={"fetch": str})
        fake_servers["web-archive"] = FakeServer(tools={"fetch": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("web"))
            await hub.add_server(server_config("web-archive"))

            assert _names(hub.get_available_tools(namespaced=True)) == [
                "web-archive-fetch",
                "web-fetch",
            ]
            assert hub.resolve_tool_name("web-fetch") == ("web", "fetch")
            assert hub.resolve_tool_name("web-archive-fetch") == ("web-archive", "fetch")
            assert hub.resolve_tool_name("unknown-fetch") is None

    @pytest.mark.asyncio
    async def test_is_auto_approved(self, make_hub, fake_servers):
        fake_servers["fs"] = FakeServer(tools={"read_file": str, "delete_file": str})

        async with make_hub() as hub:
            await hub.add_server(server_config("fs", auto_approve=["read_*"]))

            assert hub.is_auto_approved("read_file")
            assert hub.is_auto_approved("fs-read_file")
            assert not hub.is_auto_approved("delete_file")
            assert not hub.is_auto_approved("missing")


class TestContextErrors:
    """Exceptions raised inside or while connecting."""

    @pytest.mark.asyncio
    async def test_body_exception_propagates_unwrapped(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": str})

        with pytest.raises(LLMError, match="bad key"):
            async with make_hub() as hub:
                await hub.add_server(server_config("a"))
                raise LLMError("openai", "401 - bad key")

        assert fake_servers["a"].transport_closed == 1

    @pytest.mark.asyncio
    async def test_not_connected_error_propagates_unwrapped(self, make_hub):
        with pytest.raises(NotConnectedError):
            async with make_hub() as hub:
                await hub.call_tool("ghost", "t", {})

    @pytest.mark.asyncio
    async def test_grouped_transport_failure_reports_inner_message(self):
        async def exit_immediately():
            raise OSError("server exited with code 1")

        @asynccontextmanager
        async def crashing_transport(config):
            async with anyio.create_task_group() as tg:
                tg.start_soon(exit_immediately)
                await anyio.sleep(5)
                yield None, None

        hub = ConnectionHub(
            connect_timeout=2,
            close_timeout=1,
            transport_factory=crashing_transport,
            client_session_factory=FakeClientSession,
        )
        async with hub:
            with pytest.raises(ServerConnectionError) as exc_info:
                await hub.add_server(server_config("dies"))

        assert "server exited with code 1" in str(exc_info.value)
        assert "TaskGroup" not in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OSError)


class TestConcurrentMutation:
    @pytest.mark.asyncio
    async def test_concurrent_same_name_adds_serialize(self, make_hub, fake_servers):
        fake_servers["a"] = FakeServer(tools={"t": str}, initialize_delay=0.02)
        snapshots = set()
        done = anyio.Event()

        async with make_hub() as hub:

            async def read_catalog():
                while not done.is_set():
                    snapshots.add(
                        tuple((tool.name, tool.server_name) for tool in hub.get_available_tools())
                    )
                    await anyio.sleep(0)

            async def add_twice():
                async with anyio.create_task_group() as adders:
                    adders.start_soon(hub.add_server, server_config("a"))
                    adders.start_soon(hub.add_server, server_config("a"))
                done.set()

            async with anyio.create_task_group() as tg:
                tg.start_soon(read_catalog)
                tg.start_soon(add_twice)

            assert hub.get_server_names() == ["a"]
            assert fake_servers["a"].transport_opened == 2
            assert fake_servers["a"].transport_closed == 1

        assert snapshots <= {(), (("t", "a"),)}
        assert (("t", "a"),) in snapshots
