"""
OpenAI chat completions provider.
"""

from typing import Any, Dict, List, Optional

from mcp_lite.exceptions import LLMError
from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.types import LLMResponse, Message, TokenUsage, ToolCall
from mcp_lite.mcp.types import ToolDescriptor


class OpenAIProvider(LLMProvider):
    """OpenAI API provider."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        api_base: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(api_key, model, api_base or "https://api.openai.com/v1", **kwargs)

    async def chat(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self.convert_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = self.format_tools(tools)
            payload["tool_choice"] = "auto"

        result = await self._post_json(f"{self.api_base}/chat/completions", headers, payload)
        return self.parse_response(result)

    @staticmethod
    def format_tools(tools: List[ToolDescriptor]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.input_schema or {"type": "object", "properties": {}},
                },
            }
            for tool in tools
        ]

    @staticmethod
    def convert_messages(messages: List[Message]) -> List[Dict[str, Any]]:
        """
        Convert the transcript to OpenAI chat messages.

        Tool results recorded on an assistant message become separate
        ``tool`` role messages following it.
        """
        converted: List[Dict[str, Any]] = []
        for message in messages:
            if message.role in ("user", "system"):
                converted.append({"role": message.role, "content": message.content})
                continue

            assistant: Dict[str, Any] = {
                "role": "assistant",
                "content": message.content or None,
            }
            if message.tool_calls:
                assistant["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in message.tool_calls
                ]
            converted.append(assistant)

            for result in message.tool_results:
                converted.append(
                    {
                        "role": "tool",
                        "tool_call_id": result.tool_call_id,
                        "content": result.content,
                    }
                )
        return converted

    def parse_response(self, result: Dict[str, Any]) -> LLMResponse:
        choices = result.get("choices") or []
        if not choices or "message" not in choices[0]:
            raise LLMError(self.name, f"Unexpected response format: {result}")

        message = choices[0]["message"]
        tool_calls = [
            ToolCall(
                id=call["id"],
                name=call["function"]["name"],
                arguments=call["function"].get("arguments") or "{}",
            )
            for call in message.get("tool_calls") or []
        ]

        usage = None
        if result.get("usage"):
            usage = TokenUsage(
                prompt_tokens=result["usage"].get("prompt_tokens", 0),
                completion_tokens=result["usage"].get("completion_tokens", 0),
                total_tokens=result["usage"].get("total_tokens", 0),
            )

        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            usage=usage,
        )
