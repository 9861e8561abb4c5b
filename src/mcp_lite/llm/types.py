"""
Transcript records exchanged between the conversation loop and LLM providers.
"""

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


def generate_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


class ToolCall(BaseModel):
    """A tool invocation requested by the LLM. ``arguments`` is a JSON string."""

    id: str = Field(default_factory=generate_tool_call_id)
    name: str
    arguments: str = "{}"


class ToolResult(BaseModel):
    tool_call_id: str
    content: str
    is_error: bool = False


class Message(BaseModel):
    """One turn of the conversation transcript."""

    role: Literal["user", "assistant", "system"]
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_results: List[ToolResult] = Field(default_factory=list)

    def unresolved_tool_calls(self) -> List[ToolCall]:
        resolved = {result.tool_call_id for result in self.tool_results}
        return [call for call in self.tool_calls if call.id not in resolved]


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class LLMResponse(BaseModel):
    """What a provider returns for one chat call."""

    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    usage: Optional[TokenUsage] = None
