"""
Options, results and observer events of the conversation loop.
"""

from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, Field

from mcp_lite.llm.types import Message, TokenUsage, ToolCall, ToolResult

ToolEventType = Literal[
    "batch_start", "tool_start", "tool_complete", "tool_error", "batch_complete"
]


class ToolExecutionEvent(BaseModel):
    """Progress notification emitted while a turn's tool calls execute."""

    type: ToolEventType
    message: str
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None
    input: Optional[str] = None
    output: Optional[str] = None


ToolExecutionObserver = Callable[[ToolExecutionEvent], None]


class ChatOptions(BaseModel):
    temperature: float = 0.7
    max_tokens: int = 2000
    # Ceiling on LLM calls within a single chat() invocation
    max_turns: int = Field(default=10, ge=1)
    auto_execute_tools: bool = True
    observer: Optional[ToolExecutionObserver] = None


class ChatResponse(BaseModel):
    """Outcome of one chat() invocation."""

    content: str = ""
    llm_calls: int = 0
    max_turns_reached: bool = False
    # Calls left for the caller to resolve (manual mode only)
    pending_tool_calls: List[ToolCall] = Field(default_factory=list)
    usage: Optional[TokenUsage] = None


__all__ = [
    "ChatOptions",
    "ChatResponse",
    "Message",
    "ToolCall",
    "ToolEventType",
    "ToolExecutionEvent",
    "ToolExecutionObserver",
    "ToolResult",
]
