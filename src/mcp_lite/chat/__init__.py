"""
Conversation orchestration for mcp-lite.
"""

from .engine import ChatEngine, format_tool_result
from .types import ChatOptions, ChatResponse, ToolExecutionEvent, ToolExecutionObserver

__all__ = [
    "ChatEngine",
    "ChatOptions",
    "ChatResponse",
    "ToolExecutionEvent",
    "ToolExecutionObserver",
    "format_tool_result",
]
