# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Events produced by an agent run.

Every event is immutable and carries the time it was created. A run always
starts with a StartEvent and ends with exactly one StopEvent.
"""
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from deputy.chat.base import Turn
from deputy.core.constants import StopReason
from deputy.core.types import Cost


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StartEvent(_Event):
    type: Literal["start"] = "start"
    task: str


class TextEvent(_Event):
    """A text fragment. ``is_complete`` is True when it is a whole blocking response."""

    type: Literal["text"] = "text"
    text: str
    is_complete: bool = False


class TextCompleteEvent(_Event):
    type: Literal["text_complete"] = "text_complete"
    text: str


class TurnEvent(_Event):
    """A turn finished. ``turn`` is the assistant turn, if the chat recorded one."""

    type: Literal["turn"] = "turn"
    turn: Turn | None = None
    turn_number: int


class ToolStartEvent(_Event):
    type: Literal["tool_start"] = "tool_start"
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)


class ToolEndEvent(_Event):
    type: Literal["tool_end"] = "tool_end"
    tool_name: str
    tool_result: Any = None
    tool_error: str | None = None


class WarningEvent(_Event):
    type: Literal["warning"] = "warning"
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class StopEvent(_Event):
    """Final event of every run.

    Attributes:
        reason: Why the run ended.
        total_turns: Number of turns that completed.
        cost: Cost snapshot when the run ended.
    """

    type: Literal["stop"] = "stop"
    reason: StopReason
    total_turns: int
    cost: Cost


AgentEvent = Annotated[
    StartEvent
    | TextEvent
    | TextCompleteEvent
    | TurnEvent
    | ToolStartEvent
    | ToolEndEvent
    | WarningEvent
    | StopEvent,
    Field(discriminator="type"),
]
