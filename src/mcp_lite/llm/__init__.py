"""
LLM vendor adapters for mcp-lite.
"""

from .anthropic import AnthropicProvider
from .base import LLMProvider
from .factory import create_llm_provider
from .mock import MockProvider
from .openai import OpenAIProvider
from .types import LLMResponse, Message, TokenUsage, ToolCall, ToolResult

__all__ = [
    "LLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "MockProvider",
    "create_llm_provider",
    "LLMResponse",
    "Message",
    "TokenUsage",
    "ToolCall",
    "ToolResult",
]
