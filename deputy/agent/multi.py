# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Delegation from a lead agent to specialized sub-agents."""
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from deputy.agent.agent import Agent
from deputy.chat.base import ChatSession, Tool, ToolRejection
from deputy.chat.langchain import LangChainChat
from deputy.core.constants import HookEventType, ToolName
from deputy.core.exceptions import ConfigurationError
from deputy.core.types import ToolAnnotations
from deputy.core.utils import truncate_string
from deputy.hooks.registry import HookMatcher
from deputy.permissions.policy import Permissions


SUB_AGENTS_MARKER = "# Available Sub-Agents"
INHERIT_MODEL = "inherit"


class AgentDefinition(BaseModel):
    """Blueprint of a sub-agent the lead agent can delegate to.

    Attributes:
        name: Name the lead agent uses in ``delegate_to_agent``.
        description: When to use this sub-agent; shown to the lead agent.
        prompt: System prompt of the sub-agent.
        tools: Tools available to the sub-agent.
        model: "inherit" to reuse the lead agent's model, otherwise a model
            string for ``LangChainChat``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str
    prompt: str
    tools: list[Tool] = Field(default_factory=list)
    model: str = INHERIT_MODEL


DELEGATE_PARAMETERS = {
    "type": "object",
    "properties": {
        "agent_name": {"type": "string", "description": "Name of the sub-agent to delegate to"},
        "task": {"type": "string", "description": "The task to delegate to the sub-agent"},
    },
    "required": ["agent_name", "task"],
}


def build_lead_prompt(base_prompt: str | None, sub_agents: Sequence[AgentDefinition]) -> str:
    lines: list[str] = []
    if base_prompt:
        lines += [base_prompt, ""]
    if sub_agents:
        lines += [
            SUB_AGENTS_MARKER,
            "",
            "You can delegate specialized tasks to these sub-agents using the",
            f"`{ToolName.DELEGATE_TO_AGENT}` tool:",
            "",
        ]
        for definition in sub_agents:
            lines += [f"## {definition.name}", definition.description, ""]
        lines += [
            "When delegating, provide a clear task description. The sub-agent",
            "will complete the task and return results to you.",
            "",
        ]
    return "\n".join(lines)


def extract_base_prompt(full_prompt: str | None) -> str | None:
    """Return the part of a lead prompt before the sub-agent section."""
    if not full_prompt:
        return None
    base, marker, _ = full_prompt.partition(SUB_AGENTS_MARKER)
    if not marker:
        return full_prompt
    return base.rstrip() or None


class LeadAgent(Agent):
    """Agent that can delegate tasks to sub-agents.

    Each delegation creates a fresh sub-agent sharing the lead agent's
    permissions and working directory, runs it to completion and returns
    its response as the tool result. SubagentStop hooks fire after every
    delegation that ran.
    """

    def __init__(
        self,
        chat: ChatSession,
        sub_agents: Sequence[AgentDefinition] = (),
        tools: Sequence[Tool] | None = None,
        system_prompt: str | None = None,
        permissions: Permissions | None = None,
        working_dir: str | Path | None = None,
        hooks: Sequence[HookMatcher] | None = None,
    ) -> None:
        for definition in sub_agents:
            if not isinstance(definition, AgentDefinition):
                raise ConfigurationError("All sub_agents must be AgentDefinition objects")
        self.sub_agent_defs: list[AgentDefinition] = list(sub_agents)

        super().__init__(
            chat=chat,
            tools=[self._create_delegate_tool(), *(tools or ())],
            system_prompt=build_lead_prompt(system_prompt, self.sub_agent_defs),
            permissions=permissions,
            working_dir=working_dir,
            hooks=hooks,
        )

    def register_sub_agent(self, definition: AgentDefinition) -> "LeadAgent":
        if not isinstance(definition, AgentDefinition):
            raise ConfigurationError("definition must be an AgentDefinition")
        self.sub_agent_defs.append(definition)
        base = extract_base_prompt(self.chat.get_system_prompt())
        self.chat.set_system_prompt(build_lead_prompt(base, self.sub_agent_defs))
        logger.info("Registered sub-agent: {name}", name=definition.name)
        return self

    def available_sub_agents(self) -> list[str]:
        return [d.name for d in self.sub_agent_defs]

    def _find(self, agent_name: str) -> AgentDefinition | None:
        return next((d for d in self.sub_agent_defs if d.name == agent_name), None)

    def _create_sub_agent(self, definition: AgentDefinition) -> Agent:
        if definition.model == INHERIT_MODEL:
            clone = getattr(self.chat, "clone", None)
            if clone is None:
                raise ConfigurationError(
                    f"Could not inherit model for sub-agent '{definition.name}'; "
                    "specify an explicit model in its AgentDefinition"
                )
            sub_chat = clone()
        else:
            sub_chat = LangChainChat(definition.model)

        return Agent(
            chat=sub_chat,
            tools=definition.tools,
            system_prompt=definition.prompt,
            permissions=self.permissions,
            working_dir=self.working_dir,
        )

    def _create_delegate_tool(self) -> Tool:
        async def delegate_to_agent(agent_name: str, task: str) -> str | ToolRejection:
            definition = self._find(agent_name)
            if definition is None:
                return ToolRejection(
                    reason=(
                        f"Unknown agent: {agent_name}. "
                        f"Available agents: {', '.join(self.available_sub_agents())}"
                    )
                )

            logger.info(
                "Delegating to {agent_name}: {task}",
                agent_name=agent_name,
                task=truncate_string(task, 100),
            )
            try:
                sub_agent = self._create_sub_agent(definition)
                sub_result = await sub_agent.arun(task)
            except Exception as e:
                logger.error(
                    "Sub-agent {agent_name} failed: {error}",
                    agent_name=agent_name,
                    error=str(e),
                )
                return ToolRejection(reason=f"Sub-agent '{agent_name}' failed.\nError: {e}")

            response = sub_result.response or ""
            await self.hooks.fire(
                HookEventType.SUBAGENT_STOP,
                agent_name=agent_name,
                task=task,
                result=response,
                context={
                    "working_dir": self.working_dir,
                    "stop_reason": sub_result.stop_reason.value,
                },
            )
            return response

        return Tool(
            name=ToolName.DELEGATE_TO_AGENT.value,
            description=(
                "Delegate a task to a specialized sub-agent. The sub-agent will "
                "complete the task and return results."
            ),
            fn=delegate_to_agent,
            parameters=DELEGATE_PARAMETERS,
            annotations=ToolAnnotations(read_only=False, destructive=False),
        )
