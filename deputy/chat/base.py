# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Chat collaborator contract consumed by the agent.

The agent never talks to a model directly. It drives a :class:`ChatSession`,
which owns the turn history, the token ledger and tool execution, and calls
the agent back through the tool request/result handlers.
"""
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from deputy.core.types import ToolAnnotations


class ToolRejection(BaseModel):
    """Returned instead of a value when a tool call must not run or failed.

    The chat session reports it to the model as a failed tool call; the
    conversation itself continues.

    Attributes:
        reason: Message shown to the model.
    """

    model_config = ConfigDict(frozen=True)

    reason: str


def reject_tool(reason: str = "Tool call rejected.") -> ToolRejection:
    return ToolRejection(reason=reason)


class Tool(BaseModel):
    """A function the model may call.

    Attributes:
        name: Name the model calls the tool by.
        description: Description shown to the model.
        fn: Implementation; sync or async, called with keyword arguments.
            May return a ToolRejection.
        parameters: JSON schema of the arguments. Inferred from ``fn`` when None.
        annotations: Behavioral hints used by the permission evaluator.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    fn: Callable[..., Any]
    parameters: dict[str, Any] | None = None
    annotations: ToolAnnotations | None = None


def create_tool(
    fn: Callable[..., Any],
    name: str | None = None,
    description: str | None = None,
    annotations: ToolAnnotations | None = None,
    parameters: dict[str, Any] | None = None,
) -> Tool:
    """Build a Tool from a function, defaulting name and description from it."""
    return Tool(
        name=name or fn.__name__,
        description=description if description is not None else (inspect.getdoc(fn) or ""),
        fn=fn,
        parameters=parameters,
        annotations=annotations,
    )


class ToolRequest(BaseModel):
    """A tool call requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    annotations: ToolAnnotations | None = None


class ToolResult(BaseModel):
    """Outcome of a tool call. ``error`` is set when the call failed or was rejected."""

    model_config = ConfigDict(frozen=True)

    request: ToolRequest
    value: Any = None
    error: str | None = None


class Turn(BaseModel):
    """One entry of the conversation history.

    Attributes:
        role: "user", "assistant" or "system".
        text: Text content of the turn.
        tool_requests: Tool calls the assistant asked for in this turn.
        tool_results: Results sent back to the model in this turn.
    """

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    text: str = ""
    tool_requests: list[ToolRequest] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)

    @property
    def has_tool_requests(self) -> bool:
        return bool(self.tool_requests)


class TokenUsage(BaseModel):
    """Cumulative token ledger of a chat session."""

    model_config = ConfigDict(frozen=True)

    input: int = 0
    output: int = 0
    cached_input: int = 0
    cost: float = 0.0


ToolRequestHandler = Callable[[ToolRequest], Awaitable[ToolRejection | None]]
ToolResultHandler = Callable[[ToolResult], Awaitable[None]]


@runtime_checkable
class ChatSession(Protocol):
    """Interface the agent requires from a chat collaborator.

    Implementations must:
    - append the prompt and the model response to the turn history,
    - run requested tools after each response, calling every request
      handler first (the first ToolRejection wins and the tool is not run)
      and every result handler after the tool ran,
    - report tool rejections and tool errors to the model as failed tool
      calls rather than raising.
    """

    def stream(self, prompt: str | None = None) -> AsyncIterator[str]:
        """Stream text fragments of the next model response."""
        ...

    async def chat(self, prompt: str | None = None) -> str:
        """Return the next model response as a whole."""
        ...

    def get_turns(self) -> list[Turn]: ...

    def set_turns(self, turns: Sequence[Turn]) -> None: ...

    def last_turn(self, role: str | None = "assistant") -> Turn | None: ...

    def get_tokens(self) -> TokenUsage: ...

    def register_tools(self, tools: Sequence[Tool]) -> None: ...

    def register_tool(self, tool: Tool) -> None: ...

    def get_tools(self) -> list[Tool]: ...

    def on_tool_request(self, handler: ToolRequestHandler) -> None: ...

    def on_tool_result(self, handler: ToolResultHandler) -> None: ...

    def get_system_prompt(self) -> str | None: ...

    def set_system_prompt(self, prompt: str | None) -> None: ...
