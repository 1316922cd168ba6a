"""Tests for event aggregation into AgentResult."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import TypeAdapter

from deputy.agent import (
    AgentEvent,
    AgentResult,
    StartEvent,
    StopEvent,
    TextCompleteEvent,
    TextEvent,
    ToolStartEvent,
    WarningEvent,
    aggregate,
)
from deputy.chat.base import Turn
from deputy.core.constants import StopReason
from deputy.core.types import Cost


START = datetime(2026, 1, 1, tzinfo=UTC)
END = START + timedelta(seconds=2.5)


class TestAggregate:
    def test_complete_run(self):
        events = [
            StartEvent(task="t"),
            TextEvent(text="Hel"),
            TextEvent(text="lo"),
            TextCompleteEvent(text="Hello"),
            StopEvent(reason=StopReason.COMPLETE, total_turns=1, cost=Cost(input=3, total=0.2)),
        ]
        turns = [Turn(role="user", text="t"), Turn(role="assistant", text="Hello")]

        result = aggregate(events, turns, START, END)

        assert result.response == "Hello"
        assert result.stop_reason == StopReason.COMPLETE
        assert result.cost == Cost(input=3, total=0.2)
        assert result.duration == pytest.approx(2.5)
        assert result.text_chunks == ["Hel", "lo"]
        assert result.n_turns == 2
        assert result.error is None
        assert result.is_success

    def test_response_is_last_assistant_turn(self):
        turns = [
            Turn(role="assistant", text="first"),
            Turn(role="user", text="more"),
            Turn(role="assistant", text="second"),
            Turn(role="user", text="tool results"),
        ]
        assert aggregate([], turns, START, END).response == "second"

    def test_response_falls_back_to_completed_text(self):
        events = [TextCompleteEvent(text="partial"), TextCompleteEvent(text="latest partial")]
        assert aggregate(events, [], START, END).response == "latest partial"

    def test_no_text_at_all(self):
        assert aggregate([], [], START, END).response is None

    def test_missing_stop_event_uses_default(self):
        result = aggregate(
            [StartEvent(task="t")],
            [],
            START,
            END,
            default_stop_reason="hook_requested_stop",
        )
        assert result.stop_reason == StopReason.HOOK_REQUESTED_STOP
        assert result.cost == Cost()
        assert not result.is_success

    def test_error_text_taken_from_warning(self):
        events = [
            WarningEvent(message="Streaming failed", details={"error": "timeout"}),
            WarningEvent(message="Non-streaming fallback failed", details={"error": "503"}),
            StopEvent(reason=StopReason.ERROR, total_turns=0, cost=Cost()),
        ]
        result = aggregate(events, [], START, END)
        assert result.error == "503"

    def test_error_only_reported_for_error_stops(self):
        events = [
            WarningEvent(message="Streaming interrupted", details={"error": "reset"}),
            StopEvent(reason=StopReason.COMPLETE, total_turns=1, cost=Cost()),
        ]
        assert aggregate(events, [], START, END).error is None

    def test_tool_calls(self):
        events = [
            ToolStartEvent(tool_name="read_file", tool_input={"path": "a"}),
            ToolStartEvent(tool_name="write_file"),
        ]
        result = aggregate(events, [], START, END)
        assert [e.tool_name for e in result.tool_calls] == ["read_file", "write_file"]


class TestAgentResult:
    def test_str(self):
        result = AgentResult(
            response="All done",
            turns=[Turn(role="assistant", text="All done")],
            cost=Cost(total=0.0123),
            duration=1.5,
            stop_reason=StopReason.MAX_TURNS,
        )
        assert str(result) == (
            "status: max_turns\n"
            "turns: 1\n"
            "tool_calls: 0\n"
            "duration: 1.50 seconds\n"
            "cost: $0.0123\n"
            "response: All done"
        )

    def test_is_frozen(self):
        result = AgentResult()
        with pytest.raises(Exception):
            result.response = "x"  # type: ignore[misc]


class TestEventSerialization:
    def test_events_discriminate_on_type(self):
        adapter = TypeAdapter(list[AgentEvent])
        events = [
            StartEvent(task="t"),
            WarningEvent(message="careful", details={"turn": 2}),
            StopEvent(reason=StopReason.COST_LIMIT, total_turns=2, cost=Cost(total=1.0)),
        ]

        restored = adapter.validate_json(adapter.dump_json(events))

        assert [type(e) for e in restored] == [StartEvent, WarningEvent, StopEvent]
        assert restored[2].reason == StopReason.COST_LIMIT
        assert restored[1].details == {"turn": 2}
