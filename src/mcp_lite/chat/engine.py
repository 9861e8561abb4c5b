"""
Conversation loop between an LLM and the tools of a ConnectionHub.
"""

import json
from typing import Any, Dict, List, Optional

from mcp.types import CallToolResult

from mcp_lite.chat.types import (
    ChatOptions,
    ChatResponse,
    ToolEventType,
    ToolExecutionEvent,
)
from mcp_lite.exceptions import UnknownToolCallError
from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.types import Message, TokenUsage, ToolCall, ToolResult
from mcp_lite.mcp.hub import ConnectionHub
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

EMPTY_RESULT_TEXT = "Tool executed successfully"


class ChatEngine:
    """
    Drives a bounded multi-turn loop: the LLM proposes tool calls, the hub
    executes them, and the results are fed back until the LLM answers in
    plain text or the turn ceiling is hit.

    One engine owns one transcript. Engines may share a hub and a provider.
    """

    def __init__(
        self,
        llm: LLMProvider,
        hub: ConnectionHub,
        namespace_tools: bool = False,
        system_prompt: Optional[str] = None,
    ):
        """
        Args:
            llm: Provider used for every turn.
            hub: Source of tools and executor of tool calls.
            namespace_tools: Advertise tools as ``<server>-<tool>`` and route
                each call straight to its server instead of probing servers
                in registration order.
            system_prompt: Sent ahead of the transcript on every LLM call
                without being stored in it.
        """
        self.llm = llm
        self.hub = hub
        self.namespace_tools = namespace_tools
        self.system_prompt = system_prompt
        self._messages: List[Message] = []

    def add_message(self, content: str, role: str = "user") -> None:
        """Append a user or system message without calling the LLM."""
        self._messages.append(Message(role=role, content=content))

    def get_messages(self) -> List[Message]:
        return list(self._messages)

    def clear(self) -> None:
        # Rebind so an in-flight chat() keeps appending to its own list
        self._messages = []

    def pending_tool_calls(self) -> List[ToolCall]:
        """Tool calls in the transcript that have no result yet."""
        return [
            call
            for message in self._messages
            if message.role == "assistant"
            for call in message.unresolved_tool_calls()
        ]

    def resolve_tool_call(self, tool_call_id: str, result: str, is_error: bool = False) -> None:
        """
        Record the result of a tool call the caller executed manually.

        The newest assistant message holding an unresolved call with this id
        receives the result.

        Raises:
            UnknownToolCallError: If no unresolved call has this id. The
                transcript is left unchanged.
        """
        for message in reversed(self._messages):
            if message.role != "assistant":
                continue
            if any(call.id == tool_call_id for call in message.unresolved_tool_calls()):
                message.tool_results.append(
                    ToolResult(tool_call_id=tool_call_id, content=result, is_error=is_error)
                )
                return
        raise UnknownToolCallError(tool_call_id)

    async def chat(self, user_input: str, options: Optional[ChatOptions] = None) -> ChatResponse:
        """
        Send a user message and run the loop until the LLM stops calling tools.

        Args:
            user_input: The user's message.
            options: Sampling parameters, the turn ceiling, manual or automatic
                tool execution and an optional progress observer.

        Returns:
            The final assistant text and loop bookkeeping. In manual mode
            ``pending_tool_calls`` lists the calls awaiting
            ``resolve_tool_call``.

        Raises:
            Exception: Whatever the LLM provider raises. Tool failures never
                propagate; they become error results in the transcript.
        """
        options = options or ChatOptions()
        messages = self._messages
        messages.append(Message(role="user", content=user_input))

        response = ChatResponse()

        while response.llm_calls < options.max_turns:
            tools = self.hub.get_available_tools(namespaced=self.namespace_tools)
            llm_response = await self.llm.chat(
                self._llm_view(messages),
                tools,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
            response.llm_calls += 1
            response.content = llm_response.content
            if llm_response.usage:
                response.usage = (response.usage or TokenUsage()) + llm_response.usage

            assistant_message = Message(
                role="assistant",
                content=llm_response.content,
                tool_calls=llm_response.tool_calls,
            )

            if not llm_response.tool_calls:
                messages.append(assistant_message)
                break

            if not options.auto_execute_tools and not self._all_auto_approved(
                llm_response.tool_calls
            ):
                messages.append(assistant_message)
                response.pending_tool_calls = list(llm_response.tool_calls)
                logger.info(
                    "Tool calls requested:",
                    data={call.name: call.arguments for call in llm_response.tool_calls},
                )
                break

            assistant_message.tool_results = await self._execute_tool_calls(
                llm_response.tool_calls, options
            )
            messages.append(assistant_message)
        else:
            response.max_turns_reached = True
            logger.warning(f"Reached maximum turns ({options.max_turns})")

        return response

    def _llm_view(self, messages: List[Message]) -> List[Message]:
        view = list(messages)
        if self.system_prompt:
            view.insert(0, Message(role="system", content=self.system_prompt))
        return view

    def _all_auto_approved(self, tool_calls: List[ToolCall]) -> bool:
        return all(self.hub.is_auto_approved(call.name) for call in tool_calls)

    async def _execute_tool_calls(
        self, tool_calls: List[ToolCall], options: ChatOptions
    ) -> List[ToolResult]:
        """Execute the calls one at a time, in the order the LLM emitted them."""

        def emit(event_type: ToolEventType, message: str, **kwargs) -> None:
            if options.observer:
                options.observer(ToolExecutionEvent(type=event_type, message=message, **kwargs))

        emit("batch_start", f"Executing {len(tool_calls)} tool(s)...")

        results: List[ToolResult] = []
        for call in tool_calls:
            result = await self._execute_tool_call(call, emit)
            results.append(result)
            if result.is_error:
                emit(
                    "tool_error",
                    f"{call.id}: {result.content}",
                    tool_name=call.name,
                    tool_call_id=call.id,
                    input=call.arguments,
                    output=result.content,
                )
            else:
                emit(
                    "tool_complete",
                    f"{call.id}: done",
                    tool_name=call.name,
                    tool_call_id=call.id,
                    output=result.content,
                )

        error_count = sum(1 for result in results if result.is_error)
        summary = f"Completed {len(results) - error_count} tool(s)"
        if error_count:
            summary += f", {error_count} failed"
        emit("batch_complete", summary)
        logger.info(summary)

        return results

    async def _execute_tool_call(self, call: ToolCall, emit) -> ToolResult:
        try:
            arguments = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            return _error_result(call, f"Invalid JSON arguments: {e}")
        if not isinstance(arguments, dict):
            return _error_result(call, "Tool arguments must be a JSON object")

        emit(
            "tool_start",
            f"{call.name}: Starting...",
            tool_name=call.name,
            tool_call_id=call.id,
            input=json.dumps(arguments, indent=2),
        )

        if self.namespace_tools:
            return await self._call_namespaced(call, arguments)
        return await self._call_first_accepting(call, arguments)

    async def _call_namespaced(self, call: ToolCall, arguments: Dict[str, Any]) -> ToolResult:
        resolved = self.hub.resolve_tool_name(call.name)
        if not resolved:
            return _error_result(call, f"Tool {call.name} not found")

        server_name, tool_name = resolved
        try:
            result = await self.hub.call_tool(server_name, tool_name, arguments)
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}")
            return _error_result(call, str(e))
        return _to_tool_result(call, result)

    async def _call_first_accepting(
        self, call: ToolCall, arguments: Dict[str, Any]
    ) -> ToolResult:
        if not any(tool.name == call.name for tool in self.hub.get_available_tools()):
            return _error_result(call, f"Tool {call.name} not found")

        last_error: Optional[Exception] = None
        for server_name in self.hub.get_server_names():
            try:
                result = await self.hub.call_tool(server_name, call.name, arguments)
            except Exception as e:
                logger.debug(f"{server_name}: Could not execute {call.name}: {e}")
                last_error = e
                continue
            return _to_tool_result(call, result)

        logger.error(f"No server could execute tool {call.name}: {last_error}")
        return _error_result(call, f"No server could execute tool {call.name}: {last_error}")


def format_tool_result(result: CallToolResult) -> str:
    """
    Flatten a tool result to text: text items joined by newlines, other
    items as ``[<type>]`` placeholders.
    """
    parts = []
    for item in result.content or []:
        if item.type == "text" and getattr(item, "text", None):
            parts.append(item.text)
        else:
            parts.append(f"[{item.type}]")
    return "\n".join(parts) or EMPTY_RESULT_TEXT


def _to_tool_result(call: ToolCall, result: CallToolResult) -> ToolResult:
    return ToolResult(
        tool_call_id=call.id,
        content=format_tool_result(result),
        is_error=bool(result.isError),
    )


def _error_result(call: ToolCall, message: str) -> ToolResult:
    return ToolResult(tool_call_id=call.id, content=f"Error: {message}", is_error=True)
