"""
Base class for LLM providers.
"""

from typing import Any, Dict, List, Optional

import aiohttp

from mcp_lite.exceptions import LLMError
from mcp_lite.llm.types import LLMResponse, Message
from mcp_lite.mcp.types import ToolDescriptor
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

# Seconds allowed for one vendor API round trip
DEFAULT_REQUEST_TIMEOUT = 120


class LLMProvider:
    """
    Base class for LLM providers.

    Each provider owns the translation between the transcript records and
    its vendor's wire format, so the conversation loop never branches on
    the vendor.
    """

    name = "base"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        api_base: Optional[str] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base
        self.request_timeout = request_timeout

    async def chat(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """
        Generate the next assistant turn.

        Args:
            messages: The conversation transcript so far.
            tools: Tools the model may call.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.

        Returns:
            The assistant's text, any tool calls it requested and token usage.
        """
        raise NotImplementedError("Subclasses must implement chat()")

    async def _post_json(
        self, url: str, headers: Dict[str, str], payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        logger.debug(f"{self.name}: POST {url}", data={"model": payload.get("model")})
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMError(
                        self.name, f"{response.status} - {error_text}", status=response.status
                    )
                return await response.json()
