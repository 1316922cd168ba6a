# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""LangChain-backed chat session.

Wraps any LangChain ``BaseChatModel`` in the :class:`~deputy.chat.base.ChatSession`
contract. Each ``stream``/``chat`` call produces one model response; tool
calls in that response are executed before the call returns and their
results are appended to the history for the next call.
"""
import asyncio
import inspect
import os
import uuid
from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import StructuredTool
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from deputy.chat.base import (
    TokenUsage,
    Tool,
    ToolRejection,
    ToolRequest,
    ToolRequestHandler,
    ToolResult,
    ToolResultHandler,
    Turn,
)


def _create_chat_model(model: str) -> BaseChatModel:
    """Create a LangChain chat model, handling special provider prefixes.

    Handles the 'openrouter:' prefix by configuring the OpenAI provider with
    OpenRouter's base URL, since OpenRouter exposes an OpenAI-compatible API.

    Args:
        model: Model identifier, e.g. 'openrouter:provider/model' or any
            string ``init_chat_model`` understands ('openai:gpt-4o').

    Returns:
        Configured BaseChatModel instance.

    Raises:
        ValueError: If OpenRouter is requested but OPENROUTER_API_KEY is not set.
    """
    if model.startswith("openrouter:"):
        openrouter_model = model[len("openrouter:") :]

        api_key = os.environ.get("OPENROUTER_API_KEY")
        if not api_key:
            raise ValueError(
                "OPENROUTER_API_KEY environment variable is required for OpenRouter models"
            )

        return init_chat_model(
            model=openrouter_model,
            model_provider="openai",
            base_url="https://openrouter.ai/api/v1",
            api_key=api_key,
            default_headers={
                "X-Title": os.environ.get("OPENROUTER_SITE_NAME", "deputy"),
            },
        )

    return init_chat_model(model)


def _content_text(content: Any) -> str:
    """Join the text parts of a message content (string or content blocks)."""
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content or "")


def _to_langchain_tool(tool: Tool) -> StructuredTool | dict[str, Any]:
    if tool.parameters is not None:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
    if inspect.iscoroutinefunction(tool.fn):
        return StructuredTool.from_function(
            coroutine=tool.fn, name=tool.name, description=tool.description or tool.name
        )
    return StructuredTool.from_function(
        func=tool.fn, name=tool.name, description=tool.description or tool.name
    )


def _format_tool_output(result: ToolResult) -> str:
    if result.error is not None:
        return f"Tool call failed with error: {result.error}"
    return "" if result.value is None else str(result.value)


class TokenPricing(BaseModel):
    """Per-million-token USD rates used to price the token ledger.

    No rates are shipped; every rate defaults to zero.
    """

    model_config = ConfigDict(frozen=True)

    input_per_million: float = Field(default=0.0, ge=0.0)
    output_per_million: float = Field(default=0.0, ge=0.0)
    cached_input_per_million: float = Field(default=0.0, ge=0.0)

    def cost(self, input_tokens: int, output_tokens: int, cached_input_tokens: int) -> float:
        uncached = max(input_tokens - cached_input_tokens, 0)
        return (
            uncached * self.input_per_million
            + output_tokens * self.output_per_million
            + cached_input_tokens * self.cached_input_per_million
        ) / 1_000_000


class LangChainChat:
    """Chat session over a LangChain chat model.

    Attributes:
        model: The underlying LangChain chat model.
        pricing: Rates used to compute the ledger cost.
    """

    def __init__(
        self,
        model: BaseChatModel | str,
        system_prompt: str | None = None,
        pricing: TokenPricing | None = None,
    ) -> None:
        self.model = _create_chat_model(model) if isinstance(model, str) else model
        self.pricing = pricing or TokenPricing()
        self._system_prompt = system_prompt
        self._turns: list[Turn] = []
        self._tools: dict[str, Tool] = {}
        self._request_handlers: list[ToolRequestHandler] = []
        self._result_handlers: list[ToolResultHandler] = []
        self._input_tokens = 0
        self._output_tokens = 0
        self._cached_tokens = 0

    def clone(self) -> "LangChainChat":
        """Fresh session on the same model: no history, tools or handlers."""
        return LangChainChat(self.model, system_prompt=self._system_prompt, pricing=self.pricing)

    # Conversation

    async def stream(self, prompt: str | None = None) -> AsyncIterator[str]:
        checkpoint = len(self._turns)
        if prompt is not None:
            self._turns.append(Turn(role="user", text=prompt))

        message: Any = None
        try:
            async for chunk in self._bound_model().astream(self._messages()):
                message = chunk if message is None else message + chunk
                text = _content_text(chunk.content)
                if text:
                    yield text
        except BaseException:
            # Drop the prompt turn so a retry does not send it twice
            del self._turns[checkpoint:]
            raise

        await self._complete(message if message is not None else AIMessage(content=""))

    async def chat(self, prompt: str | None = None) -> str:
        checkpoint = len(self._turns)
        if prompt is not None:
            self._turns.append(Turn(role="user", text=prompt))

        try:
            message = await self._bound_model().ainvoke(self._messages())
        except BaseException:
            del self._turns[checkpoint:]
            raise

        await self._complete(message)
        return _content_text(message.content)

    def _bound_model(self) -> Any:
        if not self._tools:
            return self.model
        return self.model.bind_tools([_to_langchain_tool(t) for t in self._tools.values()])

    def _messages(self) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if self._system_prompt:
            messages.append(SystemMessage(content=self._system_prompt))

        for turn in self._turns:
            if turn.role == "system":
                messages.append(SystemMessage(content=turn.text))
            elif turn.role == "assistant":
                messages.append(
                    AIMessage(
                        content=turn.text,
                        tool_calls=[
                            {"name": r.name, "args": r.arguments, "id": r.id, "type": "tool_call"}
                            for r in turn.tool_requests
                        ],
                    )
                )
            else:
                for result in turn.tool_results:
                    messages.append(
                        ToolMessage(
                            content=_format_tool_output(result),
                            tool_call_id=result.request.id,
                            status="error" if result.error is not None else "success",
                        )
                    )
                if turn.text or not turn.tool_results:
                    messages.append(HumanMessage(content=turn.text))
        return messages

    async def _complete(self, message: Any) -> None:
        """Record usage and the assistant turn, then run requested tools."""
        usage = getattr(message, "usage_metadata", None)
        if usage:
            self._input_tokens += usage.get("input_tokens", 0)
            self._output_tokens += usage.get("output_tokens", 0)
            details = usage.get("input_token_details") or {}
            self._cached_tokens += details.get("cache_read", 0) or 0

        requests = []
        for call in getattr(message, "tool_calls", None) or []:
            tool = self._tools.get(call["name"])
            requests.append(
                ToolRequest(
                    id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                    name=call["name"],
                    arguments=call.get("args") or {},
                    annotations=tool.annotations if tool is not None else None,
                )
            )

        self._turns.append(
            Turn(role="assistant", text=_content_text(message.content), tool_requests=requests)
        )

        if requests:
            results = [await self._invoke_tool(request) for request in requests]
            self._turns.append(Turn(role="user", tool_results=results))

    async def _invoke_tool(self, request: ToolRequest) -> ToolResult:
        for handler in self._request_handlers:
            rejection = await handler(request)
            if isinstance(rejection, ToolRejection):
                logger.debug("Tool call rejected", tool_name=request.name, reason=rejection.reason)
                return ToolResult(request=request, error=rejection.reason)

        tool = self._tools.get(request.name)
        if tool is None:
            result = ToolResult(request=request, error=f"Unknown tool: {request.name}")
        else:
            try:
                if inspect.iscoroutinefunction(tool.fn):
                    value = await tool.fn(**request.arguments)
                else:
                    value = await asyncio.to_thread(tool.fn, **request.arguments)
            except Exception as e:
                logger.debug("Tool raised", tool_name=request.name, error=str(e))
                result = ToolResult(request=request, error=str(e))
            else:
                if isinstance(value, ToolRejection):
                    result = ToolResult(request=request, error=value.reason)
                else:
                    result = ToolResult(request=request, value=value)

        for result_handler in self._result_handlers:
            await result_handler(result)
        return result

    # History

    def get_turns(self) -> list[Turn]:
        return list(self._turns)

    def set_turns(self, turns: Sequence[Turn]) -> None:
        self._turns = list(turns)

    def last_turn(self, role: str | None = "assistant") -> Turn | None:
        for turn in reversed(self._turns):
            if role is None or turn.role == role:
                return turn
        return None

    # Ledger

    def get_tokens(self) -> TokenUsage:
        return TokenUsage(
            input=self._input_tokens,
            output=self._output_tokens,
            cached_input=self._cached_tokens,
            cost=self.pricing.cost(self._input_tokens, self._output_tokens, self._cached_tokens),
        )

    # Tools

    def register_tools(self, tools: Sequence[Tool]) -> None:
        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def on_tool_request(self, handler: ToolRequestHandler) -> None:
        self._request_handlers.append(handler)

    def on_tool_result(self, handler: ToolResultHandler) -> None:
        self._result_handlers.append(handler)

    # System prompt

    def get_system_prompt(self) -> str | None:
        return self._system_prompt

    def set_system_prompt(self, prompt: str | None) -> None:
        self._system_prompt = prompt
