# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/hooks/registry.py
"""Hook registry for agent lifecycle events.

Hooks are callbacks registered against one of the fixed lifecycle events
(see :class:`~deputy.core.constants.HookEventType`), optionally filtered by
a regular expression over the tool name. Firing an event calls the matching
hooks in registration order and returns the first non-``None`` result.

Failure handling depends on the event:

- ``PreToolUse``: a failing hook becomes a deny result. A broken security
  hook must never let a tool call through.
- Every other event: the failure is recorded in :attr:`HookRegistry.errors`,
  logged, and the next hook runs.

Usage:
    registry = HookRegistry()
    registry.add(HookMatcher(
        event="PreToolUse",
        pattern="^write_file$",
        callback=lambda tool_name, tool_input, context: None,
        timeout=0,
    ))
    result = await registry.fire("PreToolUse", tool_name="write_file",
                                 tool_input={}, context={})
"""

import asyncio
import inspect
import multiprocessing
import pickle
import re
from collections.abc import Callable
from typing import Any

from loguru import logger

from deputy.core.constants import HookEventType
from deputy.core.exceptions import ConfigurationError, HookError
from deputy.hooks.results import HookErrorRecord, HookResult, HookResultPreToolUse
from deputy.permissions.decisions import PermissionAllow, PermissionDeny


HookCallback = Callable[..., Any]

DEFAULT_HOOK_TIMEOUT = 30.0


def _run_isolated(callback: HookCallback, kwargs: dict[str, Any], timeout: float) -> Any:
    """Run ``callback(**kwargs)`` in a worker process, killing it at ``timeout``.

    Blocking; callers run it in a thread.

    Raises:
        HookError: If the callback does not finish in time.
    """
    ctx = multiprocessing.get_context("spawn")
    pool = ctx.Pool(processes=1)
    try:
        async_result = pool.apply_async(callback, kwds=kwargs)
        return async_result.get(timeout=timeout)
    except multiprocessing.TimeoutError as e:
        raise HookError(f"Hook timed out after {timeout}s") from e
    finally:
        pool.terminate()
        pool.join()


def _can_isolate(callback: HookCallback, kwargs: dict[str, Any]) -> bool:
    """Whether the callback and its arguments can be shipped to a worker."""
    try:
        pickle.dumps((callback, kwargs))
    except Exception:
        return False
    return True


def _as_pre_tool_use_result(result: Any, tool_name: str | None) -> HookResultPreToolUse:
    """Coerce a PreToolUse hook's return value into a HookResultPreToolUse.

    Permission decisions map onto the matching hook result. Anything else
    is treated as a hook failure and denies the call.
    """
    if isinstance(result, HookResultPreToolUse):
        return result
    if isinstance(result, PermissionDeny):
        return HookResultPreToolUse(permission="deny", reason=result.reason)
    if isinstance(result, PermissionAllow):
        return HookResultPreToolUse(permission="allow")

    logger.warning(
        "PreToolUse hook returned an invalid result, denying tool call",
        result_type=type(result).__name__,
        tool_name=tool_name,
    )
    return HookResultPreToolUse(
        permission="deny",
        reason=f"Hook error: invalid result type {type(result).__name__}",
    )


class HookMatcher:
    """A single hook registration.

    Attributes:
        event: Lifecycle event the hook fires on.
        callback: Function called with event-specific keyword arguments.
            May be a plain function or a coroutine function.
        pattern: Regular expression searched in the tool name. None matches
            every tool and events that carry no tool name.
        timeout: Time budget in seconds. 0 runs the callback in-process
            without a budget.
    """

    def __init__(
        self,
        event: HookEventType | str,
        callback: HookCallback,
        pattern: str | None = None,
        timeout: float = DEFAULT_HOOK_TIMEOUT,
    ) -> None:
        try:
            self.event = HookEventType(event)
        except ValueError:
            valid = ", ".join(e.value for e in HookEventType)
            raise ConfigurationError(
                f"Invalid hook event: '{event}'. Must be one of: {valid}"
            ) from None

        if not callable(callback):
            raise ConfigurationError("Hook callback must be callable")
        self.callback = callback

        if pattern is not None:
            if not isinstance(pattern, str):
                raise ConfigurationError("Hook pattern must be a string or None")
            try:
                self._regex: re.Pattern[str] | None = re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid hook pattern '{pattern}': {e}") from e
        else:
            self._regex = None
        self.pattern = pattern

        if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout < 0:
            raise ConfigurationError("Hook timeout must be a non-negative number")
        self.timeout = float(timeout)

    def matches(self, tool_name: str | None = None) -> bool:
        """Check whether this hook applies to ``tool_name``."""
        if self._regex is None:
            return True
        if tool_name is None:
            return False
        return self._regex.search(tool_name) is not None

    def __repr__(self) -> str:
        return (
            f"HookMatcher(event={self.event.value!r}, pattern={self.pattern!r}, "
            f"timeout={self.timeout})"
        )


class HookRegistry:
    """Ordered collection of hooks owned by a single agent.

    Thread-safety: hooks are fired from the agent's event loop only.
    The error log is append-only.
    """

    def __init__(self) -> None:
        self._hooks: list[HookMatcher] = []
        self._errors: list[HookErrorRecord] = []
        self._isolation_warned = False

    def add(self, hook: HookMatcher) -> None:
        """Append a hook. Hooks fire in the order they were added.

        Raises:
            ConfigurationError: If ``hook`` is not a HookMatcher.
        """
        if not isinstance(hook, HookMatcher):
            raise ConfigurationError(
                f"Expected a HookMatcher, got {type(hook).__name__}"
            )
        self._hooks.append(hook)

    def get_hooks(
        self,
        event: HookEventType | str,
        tool_name: str | None = None,
    ) -> list[HookMatcher]:
        """Return hooks registered for ``event`` that match ``tool_name``, in order."""
        event = HookEventType(event)
        return [h for h in self._hooks if h.event == event and h.matches(tool_name)]

    async def fire(
        self,
        event: HookEventType | str,
        tool_name: str | None = None,
        **kwargs: Any,
    ) -> HookResult | None:
        """Fire matching hooks in order until one returns a result.

        Args:
            event: Event being fired.
            tool_name: Tool name for tool events, used for pattern matching.
                Passed to callbacks as ``tool_name`` when given.
            **kwargs: Event-specific keyword arguments for the callbacks.

        Returns:
            The first non-None hook result, or None if every hook abstained.
        """
        event = HookEventType(event)
        call_kwargs = dict(kwargs)
        if tool_name is not None:
            call_kwargs["tool_name"] = tool_name

        for hook in self.get_hooks(event, tool_name):
            try:
                result = await self._call(hook, call_kwargs)
            except Exception as e:
                if event == HookEventType.PRE_TOOL_USE:
                    logger.warning(
                        "PreToolUse hook error, denying tool call: {error}",
                        error=str(e),
                        tool_name=tool_name,
                    )
                    return HookResultPreToolUse(permission="deny", reason=f"Hook error: {e}")

                self._errors.append(
                    HookErrorRecord(event=event, tool_name=tool_name, message=str(e))
                )
                logger.warning(
                    "Hook error in {event}: {error}",
                    event=event.value,
                    error=str(e),
                    tool_name=tool_name,
                )
                continue

            if result is not None:
                if event == HookEventType.PRE_TOOL_USE:
                    return _as_pre_tool_use_result(result, tool_name)
                return result

        return None

    async def _call(self, hook: HookMatcher, kwargs: dict[str, Any]) -> Any:
        # Coroutine callbacks get their budget from the event loop instead
        if hook.timeout > 0 and not inspect.iscoroutinefunction(hook.callback):
            if _can_isolate(hook.callback, kwargs):
                return await asyncio.to_thread(
                    _run_isolated, hook.callback, kwargs, hook.timeout
                )
            if not self._isolation_warned:
                self._isolation_warned = True
                logger.warning(
                    "Hook callback cannot run in a worker process; "
                    "timeouts will not be enforced",
                    event=hook.event.value,
                )
            return hook.callback(**kwargs)

        result = hook.callback(**kwargs)
        if inspect.isawaitable(result):
            if hook.timeout > 0:
                return await asyncio.wait_for(result, timeout=hook.timeout)
            return await result
        return result

    @property
    def errors(self) -> list[HookErrorRecord]:
        """Hook failures recorded for non-PreToolUse events, oldest first."""
        return list(self._errors)

    def clear_errors(self) -> None:
        self._errors.clear()

    def count(self) -> int:
        return len(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def __repr__(self) -> str:
        by_event: dict[str, int] = {}
        for hook in self._hooks:
            by_event[hook.event.value] = by_event.get(hook.event.value, 0) + 1
        summary = ", ".join(f"{k}: {v}" for k, v in by_event.items())
        return f"HookRegistry({len(self._hooks)} hooks{'; ' + summary if summary else ''})"
