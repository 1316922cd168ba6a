"""Conversation driver, run events and result aggregation."""

from deputy.agent.agent import Agent
from deputy.agent.events import (
    AgentEvent,
    StartEvent,
    StopEvent,
    TextCompleteEvent,
    TextEvent,
    ToolEndEvent,
    ToolStartEvent,
    TurnEvent,
    WarningEvent,
)
from deputy.agent.multi import AgentDefinition, LeadAgent
from deputy.agent.result import AgentResult, aggregate
from deputy.agent.state import RunState


__all__ = [
    "Agent",
    "AgentDefinition",
    "AgentEvent",
    "AgentResult",
    "LeadAgent",
    "RunState",
    "StartEvent",
    "StopEvent",
    "TextCompleteEvent",
    "TextEvent",
    "ToolEndEvent",
    "ToolStartEvent",
    "TurnEvent",
    "WarningEvent",
    "aggregate",
]
