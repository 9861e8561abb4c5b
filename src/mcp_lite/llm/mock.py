"""
Scripted provider for tests and dry runs.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.types import LLMResponse, Message
from mcp_lite.mcp.types import ToolDescriptor

ScriptItem = Union[
    LLMResponse,
    str,
    BaseException,
    Callable[[List[Message], List[ToolDescriptor]], LLMResponse],
]


class MockProvider(LLMProvider):
    """
    Mock provider for testing.

    Replays a script of responses in order. A script item may be an
    ``LLMResponse``, a plain string (a text-only reply), an exception to raise,
    or a callable receiving ``(messages, tools)``. Once the script runs out the
    provider answers with a canned reply quoting the last user message.

    Every call is recorded in ``calls`` with snapshots of its arguments.
    """

    name = "mock"

    def __init__(
        self,
        responses: Optional[Iterable[ScriptItem]] = None,
        model: str = "mock-model",
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(api_key, model, api_base, **kwargs)
        self.responses: List[ScriptItem] = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def chat(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        messages = [message.model_copy(deep=True) for message in messages]
        tools = list(tools or [])
        self.calls.append(
            {
                "messages": messages,
                "tools": tools,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )

        if not self.responses:
            return LLMResponse(content=self._default_reply(messages))

        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return LLMResponse(content=item)
        if isinstance(item, LLMResponse):
            return item.model_copy(deep=True)
        return item(messages, tools)

    @staticmethod
    def _default_reply(messages: List[Message]) -> str:
        for message in reversed(messages):
            if message.role == "user":
                return f"Mock response to: {message.content}"
        return "I'm not sure what you're asking about."
