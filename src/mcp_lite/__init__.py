"""
mcp-lite - A client that lets an LLM call tools on many MCP servers.
"""

__version__ = "0.1.0"

# MCP connectivity
from mcp_lite.mcp.hub import ConnectionHub
from mcp_lite.mcp.server_connection import ServerConnection

# Conversation and batch processing
from mcp_lite.chat.engine import ChatEngine
from mcp_lite.chat.types import ChatOptions, ChatResponse, ToolExecutionEvent
from mcp_lite.batch.processor import BatchProcessor
from mcp_lite.batch.models import BatchOptions, BatchQuestion, BatchResult

# LLM providers
from mcp_lite.llm import LLMProvider, create_llm_provider

# Application and configuration
from mcp_lite.app import McpLiteApp
from mcp_lite.config import load_config, Settings

__all__ = [
    "ConnectionHub",
    "ServerConnection",
    "ChatEngine",
    "ChatOptions",
    "ChatResponse",
    "ToolExecutionEvent",
    "BatchProcessor",
    "BatchOptions",
    "BatchQuestion",
    "BatchResult",
    "LLMProvider",
    "create_llm_provider",
    "McpLiteApp",
    "load_config",
    "Settings",
]
