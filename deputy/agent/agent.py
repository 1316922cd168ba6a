# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/agent/agent.py
"""Conversation driver turning a chat session into a tool-using agent.

The agent repeatedly asks the chat session for a response, gates every tool
call through the permission policy and the PreToolUse hooks, and decides
when to stop (task answered, turn budget, cost budget, hook request or
provider failure).

Usage:
    agent = Agent(LangChainChat("openai:gpt-4o"), tools=[...])
    async for event in agent.run("Summarize README.md"):
        log_agent_event(event)

    result = agent.run_sync("Summarize README.md")
"""
import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

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
from deputy.agent.result import AgentResult, aggregate
from deputy.agent.state import RunState
from deputy.chat.base import ChatSession, Tool, ToolRejection, ToolRequest, ToolResult, Turn
from deputy.core.constants import COST_WARNING_THRESHOLD, HookEventType, StopReason, ToolName
from deputy.core.exceptions import AgentBusyError, ConfigurationError, ProviderError
from deputy.core.types import Cost
from deputy.core.utils import format_cost, hash_text, truncate_string
from deputy.hooks.registry import HookMatcher, HookRegistry
from deputy.hooks.results import (
    HookResultPostToolUse,
    HookResultPreCompact,
    HookResultPreToolUse,
)
from deputy.interactive import (
    QuestionKind,
    UserInputProvider,
    create_ask_user_tool,
    request_input,
    resolve_input_provider,
)
from deputy.permissions.decisions import PermissionContext, PermissionDeny
from deputy.permissions.policy import Permissions, permissions_standard


SUMMARY_SECTION_HEADER = "## Previous Conversation Summary"

_SUMMARY_PROMPT = (
    "Summarize the following conversation excerpt concisely. Focus on:\n"
    "1. Key decisions made\n"
    "2. Important findings or results\n"
    "3. Files created, modified, or discussed\n"
    "4. Any errors encountered and how they were resolved\n"
    "5. Current state/progress of the task\n\n"
    "Keep the summary under 500 words. Be factual and specific.\n\n"
    "Conversation to summarize:\n---\n{conversation}\n---\n\nSummary:"
)


def _describe_turn(turn: Turn) -> str:
    role = "User" if turn.role == "user" else "Assistant"
    tools = ""
    if turn.tool_requests:
        tools = f" [Tools: {', '.join(r.name for r in turn.tool_requests)}]"
    return f"{role}{tools}: {turn.text or '[no text]'}"


def fallback_summary(turns: Sequence[Turn]) -> str:
    """Plain-text digest of ``turns`` used when the model cannot summarize."""
    parts = []
    for turn in turns:
        role = "User" if turn.role == "user" else "Assistant"
        parts.append(f"{role}: {truncate_string(turn.text or '[no text]', 200)}")
    return (
        f"[Compacted {len(turns)} earlier turns - LLM summary unavailable]\n\n"
        + "\n\n".join(parts)
    )


class Agent:
    """A tool-using agent over a chat session.

    Attributes:
        chat: The chat session the agent drives.
        permissions: Policy every tool call is checked against.
        working_dir: Directory relative tool paths resolve against.
        hooks: Lifecycle hooks owned by this agent.
        input_provider: Source of answers for ``ask_user``.
    """

    def __init__(
        self,
        chat: ChatSession,
        tools: Sequence[Tool] | None = None,
        system_prompt: str | None = None,
        permissions: Permissions | None = None,
        working_dir: str | Path | None = None,
        hooks: Sequence[HookMatcher] | None = None,
        input_provider: UserInputProvider | None = None,
    ) -> None:
        if not isinstance(chat, ChatSession):
            raise ConfigurationError(
                f"chat must implement the ChatSession interface, got {type(chat).__name__}"
            )
        if permissions is not None and not isinstance(permissions, Permissions):
            raise ConfigurationError(
                f"permissions must be a Permissions object, got {type(permissions).__name__}"
            )

        self.chat = chat
        self.working_dir = str(Path(working_dir) if working_dir is not None else Path.cwd())
        self.permissions = permissions or permissions_standard(self.working_dir)
        self.hooks = HookRegistry()
        self.input_provider = input_provider
        self._state: RunState | None = None
        self._running = False

        if system_prompt is not None:
            self.chat.set_system_prompt(system_prompt)
        if tools:
            self.chat.register_tools(list(tools))
        if input_provider is not None and not any(
            t.name == ToolName.ASK_USER for t in self.chat.get_tools()
        ):
            self.chat.register_tool(create_ask_user_tool(input_provider))
        for hook in hooks or ():
            self.add_hook(hook)

        self.chat.on_tool_request(self._on_tool_request)
        self.chat.on_tool_result(self._on_tool_result)

    # Configuration

    def add_hook(self, hook: HookMatcher) -> "Agent":
        if not isinstance(hook, HookMatcher):
            raise ConfigurationError("hook must be a HookMatcher")
        self.hooks.add(hook)
        return self

    def register_tool(self, tool: Tool) -> "Agent":
        self.chat.register_tool(tool)
        return self

    def register_tools(self, tools: Sequence[Tool]) -> "Agent":
        self.chat.register_tools(list(tools))
        return self

    # Introspection

    def cost(self) -> Cost:
        """Cost so far, read from the chat session's token ledger."""
        tokens = self.chat.get_tokens()
        return Cost(
            input=tokens.input,
            output=tokens.output,
            cached=tokens.cached_input,
            total=tokens.cost,
        )

    def turns(self) -> list[Turn]:
        return self.chat.get_turns()

    def last_turn(self, role: str | None = "assistant") -> Turn | None:
        return self.chat.last_turn(role)

    @property
    def is_running(self) -> bool:
        return self._running

    # Running

    def run(self, task: str, max_turns: int | None = None) -> AsyncIterator[AgentEvent]:
        """Run the agent on ``task``, yielding events as they happen.

        The returned async generator does nothing until iterated. Closing it
        early (``aclose`` or breaking out of ``async for``) closes the
        in-flight model stream.

        Args:
            task: Prompt sent to the model on the first turn.
            max_turns: Turn budget. Defaults to ``permissions.max_turns``.

        Returns:
            Async iterator of events, ending with exactly one StopEvent.

        Raises:
            AgentBusyError: If another run of this agent is in progress.
            ConfigurationError: If ``max_turns`` is less than 1.
        """
        if self._running:
            raise AgentBusyError("Agent is already running; wait for the current run to finish")
        turns = self.permissions.max_turns if max_turns is None else max_turns
        if isinstance(turns, bool) or not isinstance(turns, int) or turns < 1:
            raise ConfigurationError(f"max_turns must be a positive integer, got {turns!r}")
        return self._run(task, turns)

    async def arun(self, task: str, max_turns: int | None = None) -> AgentResult:
        """Run to completion and aggregate the events.

        Raises:
            ProviderError: If the model provider failed and the blocking
                fallback failed too. The partial result is attached.
        """
        start_time = datetime.now(UTC)
        events: list[AgentEvent] = []
        stream = self.run(task, max_turns)
        try:
            async for event in stream:
                events.append(event)
        finally:
            await stream.aclose()  # type: ignore[attr-defined]

        result = aggregate(events, self.chat.get_turns(), start_time, datetime.now(UTC))
        if result.stop_reason == StopReason.ERROR:
            raise ProviderError(f"Model provider failed: {result.error}", result=result)
        return result

    def run_sync(self, task: str, max_turns: int | None = None) -> AgentResult:
        """Blocking form of :meth:`arun` for callers outside an event loop."""
        return asyncio.run(self.arun(task, max_turns))

    def _warning(self, message: str, **details: Any) -> WarningEvent:
        logger.warning(message, **details)
        return WarningEvent(message=message, details=details)

    async def _run(self, task: str, max_turns: int) -> AsyncGenerator[AgentEvent, None]:
        if self._running:
            raise AgentBusyError("Agent is already running; wait for the current run to finish")
        self._running = True
        state = self._state = RunState()
        events = self._loop(task, max_turns, state)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()
            self._state = None
            self._running = False

    async def _loop(
        self,
        task: str,
        max_turns: int,
        state: RunState,
    ) -> AsyncGenerator[AgentEvent, None]:
        yield StartEvent(task=task)

        await self.hooks.fire(
            HookEventType.SESSION_START,
            context={
                "working_dir": self.working_dir,
                "permission_mode": self.permissions.mode.value,
                "tools_count": len(self.chat.get_tools()),
            },
        )
        await self.hooks.fire(
            HookEventType.USER_PROMPT_SUBMIT,
            prompt=task,
            context={"working_dir": self.working_dir},
        )

        stop_reason = StopReason.COMPLETE
        completed = 0
        max_cost = self.permissions.max_cost_usd

        for turn_number in range(1, max_turns + 1):
            state.turn = turn_number

            if state.should_stop:
                stop_reason = state.stop_reason or StopReason.HOOK_REQUESTED_STOP
                break

            if max_cost is not None:
                current_cost = self.cost().total
                if current_cost >= max_cost:
                    stop_reason = StopReason.COST_LIMIT
                    break
                if current_cost >= max_cost * COST_WARNING_THRESHOLD:
                    yield self._warning(
                        "Approaching cost limit: "
                        f"{format_cost(current_cost)} / {format_cost(max_cost)}",
                        cost=current_cost,
                        max_cost_usd=max_cost,
                    )

            prompt = task if turn_number == 1 else None
            turns_before = len(self.chat.get_turns())
            fragments: list[str] = []
            stream_error: Exception | None = None

            stream: Any = None
            try:
                stream = self.chat.stream(prompt)
                async for fragment in stream:
                    if fragment:
                        fragments.append(fragment)
                        yield TextEvent(text=fragment)
                    for tool_event in state.drain():
                        yield tool_event
            except Exception as e:
                stream_error = e
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

            if stream_error is not None:
                if fragments:
                    yield self._warning(
                        "Streaming interrupted, keeping partial response",
                        error=str(stream_error),
                        turn=turn_number,
                    )
                else:
                    yield self._warning(
                        "Streaming failed, falling back to non-streaming",
                        error=str(stream_error),
                        turn=turn_number,
                    )
                    try:
                        response = await self.chat.chat(prompt)
                    except Exception as e:
                        for tool_event in state.drain():
                            yield tool_event
                        yield self._warning(
                            "Non-streaming fallback failed",
                            error=str(e),
                            turn=turn_number,
                        )
                        stop_reason = StopReason.ERROR
                        break
                    if response:
                        fragments.append(response)
                        yield TextEvent(text=response, is_complete=True)

            for tool_event in state.drain():
                yield tool_event

            full_text = "".join(fragments)
            if full_text:
                yield TextCompleteEvent(text=full_text)

            current_hash = hash_text(full_text) if full_text else None
            if current_hash is not None and current_hash == state.last_hash:
                yield self._warning(
                    "Agent may be stalled - identical response detected",
                    turn=turn_number,
                )
            state.last_hash = current_hash

            new_turns = self.chat.get_turns()[turns_before:]
            assistant_turns = [t for t in new_turns if t.role == "assistant"]
            completed = turn_number
            yield TurnEvent(
                turn=assistant_turns[-1] if assistant_turns else None,
                turn_number=turn_number,
            )

            if state.should_stop:
                stop_reason = state.stop_reason or StopReason.HOOK_REQUESTED_STOP
                break

            if not any(t.has_tool_requests for t in assistant_turns):
                stop_reason = StopReason.COMPLETE
                break

            if turn_number == max_turns:
                stop_reason = StopReason.MAX_TURNS

        cost = self.cost()
        context = {
            "working_dir": self.working_dir,
            "total_turns": completed,
            "cost": cost.model_dump(),
        }
        await self.hooks.fire(HookEventType.STOP, reason=stop_reason.value, context=context)
        await self.hooks.fire(HookEventType.SESSION_END, reason=stop_reason.value, context=context)

        logger.debug(
            "Agent run finished",
            reason=stop_reason.value,
            total_turns=completed,
            cost=format_cost(cost.total),
        )
        yield StopEvent(reason=stop_reason, total_turns=completed, cost=cost)

    # Tool interception

    async def _on_tool_request(self, request: ToolRequest) -> ToolRejection | None:
        context = PermissionContext(
            working_dir=self.working_dir,
            tool_annotations=request.annotations,
        )
        decision = self.permissions.evaluate(request.name, request.arguments, context)
        if isinstance(decision, PermissionDeny):
            logger.info(
                "Tool call denied by permissions",
                tool_name=request.name,
                reason=decision.reason,
            )
            return self._reject(request, decision.reason)

        hook_result = await self.hooks.fire(
            HookEventType.PRE_TOOL_USE,
            tool_name=request.name,
            tool_input=dict(request.arguments),
            context={"working_dir": self.working_dir, "tool_annotations": request.annotations},
        )
        if isinstance(hook_result, HookResultPreToolUse):
            if not hook_result.continue_:
                self._request_stop()
            if hook_result.permission == "deny":
                reason = hook_result.reason or "Denied by hook"
                logger.info("Tool call denied by hook", tool_name=request.name, reason=reason)
                return self._reject(request, reason)

        if self._state is not None:
            self._state.pending.append(
                ToolStartEvent(tool_name=request.name, tool_input=dict(request.arguments))
            )
        return None

    def _reject(self, request: ToolRequest, reason: str) -> ToolRejection:
        # Denied calls are recorded as warnings, never as Tool* events
        if self._state is not None:
            self._state.pending.append(
                WarningEvent(
                    message=f"Tool call denied: {request.name}",
                    details={"tool_name": request.name, "reason": reason},
                )
            )
        return ToolRejection(reason=reason)

    async def _on_tool_result(self, result: ToolResult) -> None:
        hook_result = await self.hooks.fire(
            HookEventType.POST_TOOL_USE,
            tool_name=result.request.name,
            tool_result=result.value,
            tool_error=result.error,
            context={"working_dir": self.working_dir},
        )
        if isinstance(hook_result, HookResultPostToolUse) and not hook_result.continue_:
            self._request_stop()

        if self._state is not None:
            self._state.pending.append(
                ToolEndEvent(
                    tool_name=result.request.name,
                    tool_result=result.value,
                    tool_error=result.error,
                )
            )

    def _request_stop(self) -> None:
        if self._state is not None:
            logger.info("Hook requested stop", turn=self._state.turn)
            self._state.request_stop(StopReason.HOOK_REQUESTED_STOP)

    # Conversation management

    async def compact(self, keep_last: int = 4, summary: str | None = None) -> bool:
        """Replace older turns with a summary appended to the system prompt.

        Fires PreCompact first; a hook result with ``continue_=False``
        cancels, and a hook-provided summary is used verbatim. Otherwise the
        model summarizes the older turns in a fresh session, falling back to
        a plain-text digest.

        Args:
            keep_last: Number of most recent turns to keep.
            summary: Summary to use instead of generating one.

        Returns:
            True if the history was compacted.

        Raises:
            AgentBusyError: If a run is in progress.
            ValueError: If ``keep_last`` is negative.
        """
        if self._running:
            raise AgentBusyError("Cannot compact while a run is in progress")
        if keep_last < 0:
            raise ValueError("keep_last must be non-negative")

        turns = self.chat.get_turns()
        if len(turns) <= keep_last:
            logger.info(
                "Not enough turns to compact",
                turns=len(turns),
                keep_last=keep_last,
            )
            return False

        compact_count = len(turns) - keep_last
        # Tool results must stay with the assistant turn that requested them
        while 0 < compact_count < len(turns) and turns[compact_count].tool_results:
            compact_count -= 1
        if compact_count == 0:
            logger.info("Nothing to compact without splitting a tool exchange")
            return False
        to_compact, to_keep = turns[:compact_count], turns[compact_count:]

        hook_result = await self.hooks.fire(
            HookEventType.PRE_COMPACT,
            turns_to_compact=to_compact,
            turns_to_keep=to_keep,
            context={
                "working_dir": self.working_dir,
                "total_turns": len(turns),
                "compact_count": compact_count,
            },
        )
        if isinstance(hook_result, HookResultPreCompact):
            if not hook_result.continue_:
                logger.info("Compaction cancelled by hook")
                return False
            if summary is None and hook_result.summary is not None:
                summary = hook_result.summary

        if summary is None:
            summary = await self._summarize(to_compact)

        section = f"{SUMMARY_SECTION_HEADER}\n{summary}"
        current = self.chat.get_system_prompt()
        self.chat.set_system_prompt(f"{current}\n\n{section}" if current else section)
        self.chat.set_turns(to_keep)

        logger.success(
            "Compacted {count} turns, keeping {kept}",
            count=compact_count,
            kept=len(to_keep),
        )
        return True

    async def _summarize(self, turns: Sequence[Turn]) -> str:
        clone = getattr(self.chat, "clone", None)
        if clone is None:
            return fallback_summary(turns)

        conversation = "\n\n".join(_describe_turn(t) for t in turns)
        try:
            summarizer = clone()
            return await summarizer.chat(_SUMMARY_PROMPT.format(conversation=conversation))
        except Exception as e:
            logger.warning(
                "LLM summarization failed, falling back to text summary: {error}",
                error=str(e),
            )
            return fallback_summary(turns)

    async def ask_user(
        self,
        question: str,
        choices: Sequence[str] | None = None,
        kind: QuestionKind = "text",
    ) -> str:
        """Ask the user through the configured input provider.

        Raises:
            UserInputUnavailableError: If there is no provider and no terminal.
        """
        provider = resolve_input_provider(self.input_provider)
        return await request_input(provider, question, choices, kind)

    def __repr__(self) -> str:
        tools = [t.name for t in self.chat.get_tools()]
        shown = ", ".join(tools[:5]) + (", ..." if len(tools) > 5 else "")
        return (
            f"Agent(tools=[{shown}], working_dir={self.working_dir!r}, "
            f"mode={self.permissions.mode.value!r}, max_turns={self.permissions.max_turns})"
        )
