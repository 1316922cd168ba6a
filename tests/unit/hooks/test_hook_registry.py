"""Tests for hook registration, ordering and failure handling."""

import asyncio
import time
from unittest.mock import patch

import pytest

from deputy.core.constants import HookEventType
from deputy.core.exceptions import ConfigurationError, HookError
from deputy.hooks import (
    HookMatcher,
    HookRegistry,
    HookResultPostToolUse,
    HookResultPreToolUse,
    HookResultStop,
)
from deputy.permissions import allow, deny


def _module_level_allow(**kwargs):
    return HookResultPreToolUse(permission="allow", reason=kwargs.get("tool_name"))


def _module_level_sleep(**kwargs):
    time.sleep(10)


class TestHookMatcherValidation:
    def test_invalid_event(self):
        with pytest.raises(ConfigurationError, match="Invalid hook event"):
            HookMatcher(event="BeforeEverything", callback=lambda **kw: None)

    def test_non_callable_callback(self):
        with pytest.raises(ConfigurationError, match="callable"):
            HookMatcher(event="Stop", callback="nope")  # type: ignore[arg-type]

    def test_bad_regex(self):
        with pytest.raises(ConfigurationError, match="Invalid hook pattern"):
            HookMatcher(event="PreToolUse", callback=lambda **kw: None, pattern="([")

    @pytest.mark.parametrize("timeout", [-1, "5", True])
    def test_bad_timeout(self, timeout):
        with pytest.raises(ConfigurationError, match="timeout"):
            HookMatcher(event="Stop", callback=lambda **kw: None, timeout=timeout)

    def test_event_accepts_enum_and_string(self):
        assert HookMatcher(event="Stop", callback=lambda **kw: None).event == HookEventType.STOP
        matcher = HookMatcher(event=HookEventType.PRE_COMPACT, callback=lambda **kw: None)
        assert matcher.event == HookEventType.PRE_COMPACT

    def test_default_timeout(self):
        assert HookMatcher(event="Stop", callback=lambda **kw: None).timeout == 30.0


class TestMatching:
    def test_no_pattern_matches_everything(self):
        matcher = HookMatcher(event="PreToolUse", callback=lambda **kw: None)
        assert matcher.matches("write_file")
        assert matcher.matches(None)

    def test_pattern_uses_search(self):
        matcher = HookMatcher(event="PreToolUse", callback=lambda **kw: None, pattern="file")
        assert matcher.matches("write_file")
        assert matcher.matches("file_stat")
        assert not matcher.matches("run_bash")

    def test_anchored_pattern(self):
        matcher = HookMatcher(event="PreToolUse", callback=lambda **kw: None, pattern="^bash$")
        assert matcher.matches("bash")
        assert not matcher.matches("run_bash")

    def test_pattern_never_matches_missing_tool_name(self):
        matcher = HookMatcher(event="Stop", callback=lambda **kw: None, pattern=".*")
        assert not matcher.matches(None)

    def test_get_hooks_filters_event_and_tool(self):
        registry = HookRegistry()
        a = HookMatcher(event="PreToolUse", callback=lambda **kw: None, pattern="bash")
        b = HookMatcher(event="PreToolUse", callback=lambda **kw: None)
        c = HookMatcher(event="PostToolUse", callback=lambda **kw: None)
        for hook in (a, b, c):
            registry.add(hook)

        assert registry.get_hooks("PreToolUse", "run_bash") == [a, b]
        assert registry.get_hooks("PreToolUse", "read_file") == [b]
        assert registry.get_hooks("PostToolUse") == [c]


class TestRegistry:
    def test_add_rejects_non_matcher(self):
        with pytest.raises(ConfigurationError, match="HookMatcher"):
            HookRegistry().add(lambda **kw: None)  # type: ignore[arg-type]

    def test_count_and_repr(self):
        registry = HookRegistry()
        assert len(registry) == 0
        assert repr(registry) == "HookRegistry(0 hooks)"
        registry.add(HookMatcher(event="PreToolUse", callback=lambda **kw: None))
        registry.add(HookMatcher(event="PreToolUse", callback=lambda **kw: None))
        registry.add(HookMatcher(event="Stop", callback=lambda **kw: None))
        assert registry.count() == 3
        assert repr(registry) == "HookRegistry(3 hooks; PreToolUse: 2, Stop: 1)"


class TestFire:
    """Ordering, short-circuit and argument passing."""

    async def test_first_non_none_result_wins(self):
        registry = HookRegistry()
        calls = []

        def abstain(**kwargs):
            calls.append("abstain")
            return None

        def refuse(**kwargs):
            calls.append("refuse")
            return HookResultPreToolUse(permission="deny", reason="no")

        def approve(**kwargs):
            calls.append("approve")
            return HookResultPreToolUse(permission="allow")

        for fn in (abstain, refuse, approve):
            registry.add(HookMatcher(event="PreToolUse", callback=fn, timeout=0))

        result = await registry.fire("PreToolUse", tool_name="x", tool_input={}, context={})

        assert result == HookResultPreToolUse(permission="deny", reason="no")
        assert calls == ["abstain", "refuse"]

    async def test_no_hooks_returns_none(self):
        assert await HookRegistry().fire("Stop", reason="complete") is None

    async def test_all_abstain_returns_none(self):
        registry = HookRegistry()
        registry.add(HookMatcher(event="Stop", callback=lambda **kw: None, timeout=0))
        assert await registry.fire("Stop") is None

    async def test_tool_name_is_passed_to_callback(self):
        registry = HookRegistry()
        seen = {}

        def record(**kwargs):
            seen.update(kwargs)

        registry.add(HookMatcher(event="PostToolUse", callback=record, timeout=0))
        await registry.fire("PostToolUse", tool_name="read_file", tool_result="ok", context={})

        assert seen == {"tool_name": "read_file", "tool_result": "ok", "context": {}}

    async def test_tool_name_omitted_when_not_given(self):
        registry = HookRegistry()
        seen = {}
        registry.add(
            HookMatcher(event="SessionStart", callback=lambda **kw: seen.update(kw), timeout=0)
        )
        await registry.fire("SessionStart", context={"working_dir": "/w"})
        assert seen == {"context": {"working_dir": "/w"}}

    async def test_async_callbacks_are_awaited(self):
        registry = HookRegistry()

        async def later(**kwargs):
            await asyncio.sleep(0)
            return HookResultStop()

        registry.add(HookMatcher(event="Stop", callback=later, timeout=0))
        assert await registry.fire("Stop") == HookResultStop()

    async def test_returned_awaitable_is_awaited(self):
        registry = HookRegistry()

        async def later():
            return HookResultPostToolUse(continue_=False)

        registry.add(HookMatcher(event="PostToolUse", callback=lambda **kw: later(), timeout=0))
        result = await registry.fire("PostToolUse", tool_name="x")
        assert result.continue_ is False

    async def test_non_matching_hooks_are_skipped(self):
        registry = HookRegistry()
        registry.add(
            HookMatcher(
                event="PreToolUse",
                callback=lambda **kw: HookResultPreToolUse(permission="deny", reason="bash"),
                pattern="bash",
                timeout=0,
            )
        )
        assert await registry.fire("PreToolUse", tool_name="read_file") is None


class TestFailureHandling:
    async def test_pre_tool_use_error_denies(self):
        registry = HookRegistry()
        later_called = []

        def broken(**kwargs):
            raise RuntimeError("boom")

        registry.add(HookMatcher(event="PreToolUse", callback=broken, timeout=0))
        registry.add(
            HookMatcher(event="PreToolUse", callback=lambda **kw: later_called.append(1), timeout=0)
        )

        result = await registry.fire("PreToolUse", tool_name="write_file", tool_input={})

        assert result == HookResultPreToolUse(permission="deny", reason="Hook error: boom")
        assert later_called == []
        assert registry.errors == []

    @pytest.mark.parametrize(
        ("returned", "expected"),
        [
            (deny("nope"), HookResultPreToolUse(permission="deny", reason="nope")),
            (allow(), HookResultPreToolUse(permission="allow")),
            (
                {"permission": "deny"},
                HookResultPreToolUse(
                    permission="deny", reason="Hook error: invalid result type dict"
                ),
            ),
            (
                HookResultStop(),
                HookResultPreToolUse(
                    permission="deny", reason="Hook error: invalid result type HookResultStop"
                ),
            ),
        ],
    )
    async def test_pre_tool_use_result_is_coerced(self, returned, expected):
        registry = HookRegistry()
        registry.add(HookMatcher(event="PreToolUse", callback=lambda **kw: returned, timeout=0))

        result = await registry.fire("PreToolUse", tool_name="read_file", tool_input={})

        assert result == expected

    async def test_other_events_return_results_unchanged(self):
        registry = HookRegistry()
        registry.add(HookMatcher(event="Stop", callback=lambda **kw: {"raw": True}, timeout=0))

        assert await registry.fire("Stop") == {"raw": True}

    async def test_other_event_error_is_recorded_and_next_hook_runs(self, log_messages):
        registry = HookRegistry()

        def broken(**kwargs):
            raise ValueError("bad stop hook")

        registry.add(HookMatcher(event="PostToolUse", callback=broken, timeout=0))
        registry.add(
            HookMatcher(
                event="PostToolUse",
                callback=lambda **kw: HookResultPostToolUse(),
                timeout=0,
            )
        )

        result = await registry.fire("PostToolUse", tool_name="read_file")

        assert result == HookResultPostToolUse()
        assert len(registry.errors) == 1
        record = registry.errors[0]
        assert record.event == HookEventType.POST_TOOL_USE
        assert record.tool_name == "read_file"
        assert record.message == "bad stop hook"
        assert any("Hook error in PostToolUse" in m for m in log_messages)

    async def test_errors_returns_a_copy_and_can_be_cleared(self):
        registry = HookRegistry()

        def broken(**kwargs):
            raise RuntimeError("x")

        registry.add(HookMatcher(event="Stop", callback=broken, timeout=0))
        await registry.fire("Stop")
        await registry.fire("Stop")

        errors = registry.errors
        errors.clear()
        assert len(registry.errors) == 2

        registry.clear_errors()
        assert registry.errors == []

    async def test_async_timeout(self):
        registry = HookRegistry()

        async def slow(**kwargs):
            await asyncio.sleep(5)

        registry.add(HookMatcher(event="PreToolUse", callback=slow, timeout=0.05))
        result = await registry.fire("PreToolUse", tool_name="x")

        assert result.permission == "deny"
        assert result.reason.startswith("Hook error")


class TestIsolation:
    """Sync callbacks with a time budget run in a worker process."""

    async def test_picklable_callback_runs_isolated(self):
        registry = HookRegistry()
        registry.add(HookMatcher(event="PreToolUse", callback=_module_level_allow, timeout=5))

        with patch(
            "deputy.hooks.registry._run_isolated",
            side_effect=lambda cb, kwargs, timeout: cb(**kwargs),
        ) as isolated:
            result = await registry.fire("PreToolUse", tool_name="read_file")

        isolated.assert_called_once()
        assert isolated.call_args.args[2] == 5.0
        assert result.reason == "read_file"

    async def test_unpicklable_callback_runs_in_process_with_one_warning(self, log_messages):
        registry = HookRegistry()
        registry.add(HookMatcher(event="PostToolUse", callback=lambda **kw: None, timeout=5))
        registry.add(
            HookMatcher(
                event="PostToolUse",
                callback=lambda **kw: HookResultPostToolUse(),
                timeout=5,
            )
        )

        with patch("deputy.hooks.registry._run_isolated") as isolated:
            first = await registry.fire("PostToolUse", tool_name="x")
            await registry.fire("PostToolUse", tool_name="x")

        isolated.assert_not_called()
        assert first == HookResultPostToolUse()
        warnings = [m for m in log_messages if "cannot run in a worker process" in m]
        assert len(warnings) == 1

    async def test_zero_timeout_never_isolates(self):
        registry = HookRegistry()
        registry.add(HookMatcher(event="PreToolUse", callback=_module_level_allow, timeout=0))

        with patch("deputy.hooks.registry._run_isolated") as isolated:
            await registry.fire("PreToolUse", tool_name="x")

        isolated.assert_not_called()

    async def test_isolation_timeout_denies_pre_tool_use(self):
        registry = HookRegistry()
        registry.add(HookMatcher(event="PreToolUse", callback=_module_level_sleep, timeout=5))

        with patch(
            "deputy.hooks.registry._run_isolated",
            side_effect=HookError("Hook timed out after 5.0s"),
        ):
            result = await registry.fire("PreToolUse", tool_name="run_bash")

        assert result == HookResultPreToolUse(
            permission="deny", reason="Hook error: Hook timed out after 5.0s"
        )
