"""Lifecycle hooks: registrations, results and built-in policies."""

from deputy.hooks.builtin import hook_block_dangerous_bash, hook_limit_file_writes, hook_log_tools
from deputy.hooks.registry import HookCallback, HookMatcher, HookRegistry
from deputy.hooks.results import (
    HookErrorRecord,
    HookResult,
    HookResultPostToolUse,
    HookResultPreCompact,
    HookResultPreToolUse,
    HookResultSessionEnd,
    HookResultSessionStart,
    HookResultStop,
    HookResultSubagentStop,
    HookResultUserPromptSubmit,
)


__all__ = [
    "HookCallback",
    "HookErrorRecord",
    "HookMatcher",
    "HookRegistry",
    "HookResult",
    "HookResultPostToolUse",
    "HookResultPreCompact",
    "HookResultPreToolUse",
    "HookResultSessionEnd",
    "HookResultSessionStart",
    "HookResultStop",
    "HookResultSubagentStop",
    "HookResultUserPromptSubmit",
    "hook_block_dangerous_bash",
    "hook_limit_file_writes",
    "hook_log_tools",
]
