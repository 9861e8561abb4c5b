"""
Records consumed and produced by the batch runner.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mcp_lite.chat.types import ChatOptions


class _BatchModel(BaseModel):
    # Serialized with camelCase keys, constructed with snake_case names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BatchQuestion(_BatchModel):
    id: Optional[str] = None
    question: str
    context: Optional[str] = None
    expected_result: Optional[str] = None


class ToolCallRecord(_BatchModel):
    tool_name: str
    tool_call_id: str
    input: str = ""
    output: str = ""
    success: bool = False
    error: Optional[str] = None
    # Epoch milliseconds when the call started
    timestamp: int


class BatchResult(_BatchModel):
    id: str
    question: str
    context: Optional[str] = None
    expected_result: Optional[str] = None
    response: str = ""
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    success: bool
    error: Optional[str] = None
    processing_time_ms: int = Field(default=0, alias="processingTime")
    max_turns_reached: bool = False


class BatchOptions(_BatchModel):
    max_concurrency: int = Field(default=1, ge=1)
    temperature: float = 0.7
    max_tokens: int = 2000
    max_turns: int = Field(default=10, ge=1)
    auto_execute_tools: bool = True
    continue_on_error: bool = True
    output_format: Literal["csv", "json"] = "csv"
    include_context: bool = True

    def chat_options(self) -> ChatOptions:
        return ChatOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            max_turns=self.max_turns,
            auto_execute_tools=self.auto_execute_tools,
        )


class BatchSummary(_BatchModel):
    """Metadata block written ahead of the results."""

    timestamp: str
    total_questions: int
    success_count: int
    error_count: int
    options: BatchOptions


class BatchReport(BaseModel):
    metadata: BatchSummary
    results: List[BatchResult]
