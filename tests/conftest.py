# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

Provides a scripted in-memory chat session implementing the ChatSession
contract, so agent behavior can be tested without a model provider.
"""
import inspect
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest
from loguru import logger

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


class AsyncIteratorMock:
    """Mock async iterator for testing async generators.

    Usage:
        mock_stream = AsyncIteratorMock(["a", "b"])
        async for item in mock_stream:
            print(item)
    """

    def __init__(self, items: list[Any]) -> None:
        self.items = items
        self.index = 0

    def __aiter__(self) -> "AsyncIteratorMock":
        return self

    async def __anext__(self) -> Any:
        if self.index >= len(self.items):
            raise StopAsyncIteration
        item = self.items[self.index]
        self.index += 1
        return item


@dataclass
class Reply:
    """One scripted model response.

    Attributes:
        text: Full response text.
        chunks: Stream fragments; defaults to the text split on spaces.
        tool_calls: (tool name, arguments) pairs requested by the response.
        cost: Cumulative ledger cost after this response.
        stream_error: Raised by stream() before any fragment.
        fail_after: Raise after this many fragments were streamed.
        chat_error: Raised by the blocking chat() call.
    """

    text: str = ""
    chunks: list[str] | None = None
    tool_calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    cost: float | None = None
    stream_error: Exception | None = None
    fail_after: int | None = None
    chat_error: Exception | None = None

    def fragments(self) -> list[str]:
        if self.chunks is not None:
            return self.chunks
        if not self.text:
            return []
        words = self.text.split(" ")
        return [w + " " for w in words[:-1]] + [words[-1]]


class FakeChat:
    """Scripted ChatSession.

    Each stream()/chat() call consumes the next Reply once it completes.
    With ``repeat_last`` the final reply is reused forever. A failing
    stream does not consume its reply, so the fallback sees the same one.
    """

    def __init__(
        self,
        replies: Sequence[Reply],
        repeat_last: bool = False,
        clones: Sequence["FakeChat"] = (),
    ) -> None:
        self.replies = list(replies)
        self.repeat_last = repeat_last
        self.clones = list(clones)
        self.prompts: list[str | None] = []
        self.stream_calls = 0
        self.chat_calls = 0
        self.aborted_streams = 0
        self._index = 0
        self._turns: list[Turn] = []
        self._tools: dict[str, Tool] = {}
        self._request_handlers: list[ToolRequestHandler] = []
        self._result_handlers: list[ToolResultHandler] = []
        self._system_prompt: str | None = None
        self._cost = 0.0
        self._calls = 0

    def _current(self) -> Reply:
        if self._index < len(self.replies):
            return self.replies[self._index]
        if self.repeat_last and self.replies:
            return self.replies[-1]
        return Reply(text="")

    def clone(self) -> "FakeChat":
        if not self.clones:
            raise RuntimeError("No clone available")
        return self.clones.pop(0)

    async def stream(self, prompt: str | None = None) -> AsyncIterator[str]:
        self.stream_calls += 1
        reply = self._current()
        checkpoint = len(self._turns)
        if prompt is not None:
            self._turns.append(Turn(role="user", text=prompt))
        self.prompts.append(prompt)
        try:
            if reply.stream_error is not None:
                raise reply.stream_error
            for i, chunk in enumerate(reply.fragments()):
                if reply.fail_after is not None and i == reply.fail_after:
                    raise RuntimeError("connection reset")
                yield chunk
        except BaseException:
            del self._turns[checkpoint:]
            self.aborted_streams += 1
            raise
        await self._complete(reply)

    async def chat(self, prompt: str | None = None) -> str:
        self.chat_calls += 1
        reply = self._current()
        if reply.chat_error is not None:
            raise reply.chat_error
        if prompt is not None:
            self._turns.append(Turn(role="user", text=prompt))
        self.prompts.append(prompt)
        await self._complete(reply)
        return reply.text

    async def _complete(self, reply: Reply) -> None:
        self._index += 1
        self._calls += 1
        if reply.cost is not None:
            self._cost = reply.cost
        requests = [
            ToolRequest(
                id=f"call_{self._calls}_{i}",
                name=name,
                arguments=args,
                annotations=self._tools[name].annotations if name in self._tools else None,
            )
            for i, (name, args) in enumerate(reply.tool_calls)
        ]
        self._turns.append(Turn(role="assistant", text=reply.text, tool_requests=requests))
        if requests:
            results = [await self._invoke(r) for r in requests]
            self._turns.append(Turn(role="user", tool_results=results))

    async def _invoke(self, request: ToolRequest) -> ToolResult:
        for handler in self._request_handlers:
            rejection = await handler(request)
            if isinstance(rejection, ToolRejection):
                return ToolResult(request=request, error=rejection.reason)
        tool = self._tools.get(request.name)
        if tool is None:
            result = ToolResult(request=request, error=f"Unknown tool: {request.name}")
        else:
            try:
                value = tool.fn(**request.arguments)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                result = ToolResult(request=request, error=str(e))
            else:
                if isinstance(value, ToolRejection):
                    result = ToolResult(request=request, error=value.reason)
                else:
                    result = ToolResult(request=request, value=value)
        for handler in self._result_handlers:
            await handler(result)
        return result

    def get_turns(self) -> list[Turn]:
        return list(self._turns)

    def set_turns(self, turns: Sequence[Turn]) -> None:
        self._turns = list(turns)

    def last_turn(self, role: str | None = "assistant") -> Turn | None:
        for turn in reversed(self._turns):
            if role is None or turn.role == role:
                return turn
        return None

    def get_tokens(self) -> TokenUsage:
        return TokenUsage(input=10 * self._calls, output=5 * self._calls, cost=self._cost)

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

    def get_system_prompt(self) -> str | None:
        return self._system_prompt

    def set_system_prompt(self, prompt: str | None) -> None:
        self._system_prompt = prompt


def _as_reply(item: Reply | str | dict[str, Any]) -> Reply:
    if isinstance(item, Reply):
        return item
    if isinstance(item, str):
        return Reply(text=item)
    return Reply(**item)


@pytest.fixture
def fake_chat_factory() -> Callable[..., FakeChat]:
    """Factory fixture for scripted chats.

    Replies may be Reply objects, plain strings (text-only replies) or
    dicts of Reply fields.
    """

    def _create(
        replies: Sequence[Reply | str | dict[str, Any]] = (),
        repeat_last: bool = False,
        clones: Sequence[FakeChat] = (),
    ) -> FakeChat:
        return FakeChat([_as_reply(r) for r in replies], repeat_last=repeat_last, clones=clones)

    return _create


@pytest.fixture
def make_tool() -> Callable[..., Tool]:
    """Factory fixture for tools with a recording implementation."""

    def _create(
        name: str,
        fn: Callable[..., Any] | None = None,
        annotations: Any = None,
    ) -> Tool:
        def _default(**kwargs: Any) -> str:
            return f"{name} ok"

        return Tool(
            name=name, description=f"{name} tool", fn=fn or _default, annotations=annotations
        )

    return _create


@pytest.fixture
def async_iterator_mock_factory() -> Callable[[list[Any]], AsyncIteratorMock]:
    """Factory fixture for creating AsyncIteratorMock instances."""

    def _create(items: list[Any]) -> AsyncIteratorMock:
        return AsyncIteratorMock(items)

    return _create


@pytest.fixture
def log_messages() -> Any:
    """Capture loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def run_events() -> Callable[..., Any]:
    """Collect every event of ``agent.run(...)`` into a list."""

    async def _collect(agent: Any, task: str, **kwargs: Any) -> list[Any]:
        return [event async for event in agent.run(task, **kwargs)]

    return _collect

