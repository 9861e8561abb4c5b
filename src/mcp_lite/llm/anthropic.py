"""
Anthropic messages API provider.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from mcp_lite.exceptions import LLMError
from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.types import LLMResponse, Message, TokenUsage, ToolCall
from mcp_lite.mcp.types import ToolDescriptor
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(LLMProvider):
    """Anthropic API provider."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-3-5-sonnet-20241022",
        api_base: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(api_key, model, api_base or "https://api.anthropic.com/v1", **kwargs)

    async def chat(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

        system_prompt, anthropic_messages = self.convert_messages(messages)
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system_prompt:
            payload["system"] = system_prompt
        if tools:
            payload["tools"] = self.format_tools(tools)

        result = await self._post_json(f"{self.api_base}/messages", headers, payload)
        return self.parse_response(result)

    @staticmethod
    def format_tools(tools: List[ToolDescriptor]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description or "",
                "input_schema": {"type": "object", **(tool.input_schema or {})},
            }
            for tool in tools
        ]

    @staticmethod
    def convert_messages(
        messages: List[Message],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Convert the transcript to Anthropic's structure.

        System messages are lifted into the top-level ``system`` prompt. Tool
        results recorded on an assistant message are sent back as a user
        message of ``tool_result`` blocks.

        Returns:
            (system_prompt, messages)
        """
        system_parts: List[str] = []
        converted: List[Dict[str, Any]] = []

        for message in messages:
            if message.role == "system":
                system_parts.append(message.content)
                continue
            if message.role == "user":
                converted.append({"role": "user", "content": message.content})
                continue

            content: List[Dict[str, Any]] = []
            if message.content:
                content.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                content.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": _parse_arguments(call.arguments),
                    }
                )
            if content:
                converted.append({"role": "assistant", "content": content})

            if message.tool_results:
                converted.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.tool_call_id,
                                "content": result.content,
                                "is_error": result.is_error,
                            }
                            for result in message.tool_results
                        ],
                    }
                )

        system_prompt = "\n\n".join(part for part in system_parts if part) or None
        return system_prompt, converted

    def parse_response(self, result: Dict[str, Any]) -> LLMResponse:
        if "content" not in result:
            raise LLMError(self.name, f"Unexpected response format: {result}")

        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in result["content"] or []:
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block["id"],
                        name=block["name"],
                        arguments=json.dumps(block.get("input") or {}),
                    )
                )

        usage = None
        if result.get("usage"):
            input_tokens = result["usage"].get("input_tokens", 0)
            output_tokens = result["usage"].get("output_tokens", 0)
            usage = TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        return LLMResponse(content="".join(texts), tool_calls=tool_calls, usage=usage)


def _parse_arguments(arguments: str) -> Dict[str, Any]:
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        logger.warning(f"Sending malformed tool arguments as empty input: {arguments!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}
