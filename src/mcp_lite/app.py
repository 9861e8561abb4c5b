"""
Main application class for mcp-lite.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from mcp_lite.chat.engine import ChatEngine
from mcp_lite.config.settings import Settings, load_config
from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.factory import create_llm_provider
from mcp_lite.mcp.client_session import McpLiteClientSession
from mcp_lite.mcp.hub import ConnectionHub
from mcp_lite.mcp.server_connection import ClientSessionFactory
from mcp_lite.mcp.transports import TransportFactory, open_transport
from mcp_lite.utils.logging import configure_logging, get_logger


class McpLiteApp:
    """
    Composition root: settings, logging, the connection hub and the LLM.

    Example usage:
        app = McpLiteApp()

        async with app.run() as running_app:
            engine = running_app.create_engine()
            response = await engine.chat("What's the weather in Paris?")
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        settings: Optional[Settings] = None,
        llm: Optional[LLMProvider] = None,
        transport_factory: TransportFactory = open_transport,
        client_session_factory: ClientSessionFactory = McpLiteClientSession,
        namespace_tools: bool = False,
    ):
        """
        Args:
            config_path: Path to configuration file (if not provided, looks for mcp_lite.config.yaml).
            settings: Application configuration object (if provided, takes precedence over config_path).
            llm: Provider to use instead of the one named in the settings.
            transport_factory: How server transports are opened.
            client_session_factory: Session class wrapped around each transport.
            namespace_tools: Advertise tools as ``<server>-<tool>``.
        """
        self._config_path = config_path
        self._settings = settings
        self._llm = llm
        self._transport_factory = transport_factory
        self._client_session_factory = client_session_factory
        self.namespace_tools = namespace_tools

        self._hub: Optional[ConnectionHub] = None
        self.connection_errors: Dict[str, Exception] = {}
        self.logger = get_logger("mcp_lite.app")

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_config(self._config_path)
        return self._settings

    @property
    def hub(self) -> ConnectionHub:
        if self._hub is None:
            raise RuntimeError(
                "McpLiteApp not running. Use 'async with app.run()' first."
            )
        return self._hub

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = create_llm_provider(self.settings.llm)
        return self._llm

    def create_engine(self, system_prompt: Optional[str] = None) -> ChatEngine:
        """Create a ChatEngine with its own transcript on the shared hub and LLM."""
        return ChatEngine(
            self.llm,
            self.hub,
            namespace_tools=self.namespace_tools,
            system_prompt=system_prompt,
        )

    @asynccontextmanager
    async def run(self) -> AsyncIterator["McpLiteApp"]:
        """
        Connect every enabled server and yield the running app.

        Servers that fail to connect are logged and recorded in
        ``connection_errors``; the others stay usable. Everything is
        disconnected on exit.
        """
        settings = self.settings
        configure_logging(
            settings.logging.level,
            add_file_handler=settings.logging.file_path,
            console=settings.logging.console,
        )

        # Fail on a bad LLM selection before spawning any server
        llm = self.llm

        async with ConnectionHub(
            connect_timeout=settings.mcp.timeout_seconds,
            transport_factory=self._transport_factory,
            client_session_factory=self._client_session_factory,
        ) as hub:
            self._hub = hub
            try:
                self.connection_errors = await hub.add_servers(settings.server_descriptors())
                self.logger.info(
                    f"mcp-lite ready: {len(hub.get_server_names())} server(s) connected, "
                    f"{len(self.connection_errors)} failed, llm={llm.name}:{llm.model}"
                )
                yield self
            finally:
                self._hub = None
