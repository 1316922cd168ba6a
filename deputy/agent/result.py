# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/agent/result.py
"""Run result and event aggregation."""
from collections.abc import Sequence
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from deputy.agent.events import (
    AgentEvent,
    StopEvent,
    TextCompleteEvent,
    TextEvent,
    ToolStartEvent,
    WarningEvent,
)
from deputy.chat.base import Turn
from deputy.core.constants import StopReason
from deputy.core.types import Cost
from deputy.core.utils import format_cost, truncate_string


class AgentResult(BaseModel):
    """Summary of a finished (or abandoned) run.

    Attributes:
        response: Text of the final assistant turn.
        turns: Conversation history snapshot at the end of the run.
        cost: Cost at the end of the run.
        events: Every event the run produced, in order.
        duration: Wall-clock duration in seconds.
        stop_reason: Why the run ended.
        error: Provider error text when ``stop_reason`` is ``error``.
    """

    model_config = ConfigDict(frozen=True)

    response: str | None = None
    turns: list[Turn] = Field(default_factory=list)
    cost: Cost = Field(default_factory=Cost)
    events: list[AgentEvent] = Field(default_factory=list)
    duration: float | None = None
    stop_reason: StopReason = StopReason.COMPLETE
    error: str | None = None

    @property
    def n_turns(self) -> int:
        return len(self.turns)

    @property
    def tool_calls(self) -> list[ToolStartEvent]:
        return [e for e in self.events if isinstance(e, ToolStartEvent)]

    @property
    def text_chunks(self) -> list[str]:
        return [e.text for e in self.events if isinstance(e, TextEvent)]

    @property
    def is_success(self) -> bool:
        return self.stop_reason == StopReason.COMPLETE

    def __str__(self) -> str:
        lines = [
            f"status: {self.stop_reason}",
            f"turns: {self.n_turns}",
            f"tool_calls: {len(self.tool_calls)}",
        ]
        if self.duration is not None:
            lines.append(f"duration: {self.duration:.2f} seconds")
        lines.append(f"cost: {format_cost(self.cost.total)}")
        if self.response is not None:
            lines.append(f"response: {truncate_string(self.response, 60)}")
        return "\n".join(lines)


def aggregate(
    events: Sequence[AgentEvent],
    turns: Sequence[Turn],
    start_time: datetime,
    end_time: datetime,
    default_stop_reason: StopReason | str = StopReason.COMPLETE,
) -> AgentResult:
    """Collect a run's events into an AgentResult.

    The response is the text of the last assistant turn, falling back to the
    last completed text event when the history has none. Cost and stop
    reason come from the last StopEvent; without one (the caller stopped
    consuming early) ``default_stop_reason`` and a zero cost are used.

    Args:
        events: Events of the run, in order.
        turns: Conversation history snapshot.
        start_time: When the run started.
        end_time: When the run ended.
        default_stop_reason: Stop reason used when there is no StopEvent.

    Returns:
        The aggregated result.
    """
    response = next((t.text for t in reversed(turns) if t.role == "assistant"), None)
    if not response:
        response = next(
            (e.text for e in reversed(events) if isinstance(e, TextCompleteEvent)),
            response,
        )

    stop = next((e for e in reversed(events) if isinstance(e, StopEvent)), None)
    stop_reason = stop.reason if stop is not None else StopReason(default_stop_reason)
    cost = stop.cost if stop is not None else Cost()

    error = None
    if stop_reason == StopReason.ERROR:
        error = next(
            (
                str(e.details["error"])
                for e in reversed(events)
                if isinstance(e, WarningEvent) and "error" in e.details
            ),
            None,
        )

    return AgentResult(
        response=response,
        turns=list(turns),
        cost=cost,
        events=list(events),
        duration=(end_time - start_time).total_seconds(),
        stop_reason=stop_reason,
        error=error,
    )
