# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/hooks/builtin.py
"""Ready-made hooks for common auditing and safety policies.

All built-in hooks run in-process (timeout 0) and abstain (return None)
when they have no objection, so hooks registered after them still run.
"""
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from deputy.core.constants import (
    BASH_TOOL_PATTERN,
    DANGEROUS_BASH_PATTERNS,
    WRITE_TOOL_PATTERN,
    HookEventType,
)
from deputy.core.exceptions import ConfigurationError
from deputy.core.utils import truncate_string
from deputy.hooks.registry import HookMatcher
from deputy.hooks.results import HookResultPostToolUse, HookResultPreToolUse
from deputy.permissions.paths import is_path_within


def hook_log_tools(verbose: bool = False) -> HookMatcher:
    """PostToolUse hook that logs every completed or failed tool call.

    Args:
        verbose: Also log a preview of the tool result.

    Returns:
        A HookMatcher to pass to ``Agent.add_hook``.
    """

    def _log_tool(
        tool_name: str,
        tool_result: Any = None,
        tool_error: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> HookResultPostToolUse:
        if tool_error is not None:
            logger.error("Tool {tool_name} failed: {error}", tool_name=tool_name, error=tool_error)
        else:
            logger.success("Tool {tool_name} completed", tool_name=tool_name)
            if verbose and tool_result is not None:
                logger.info("Result: {preview}", preview=truncate_string(str(tool_result), 100))
        return HookResultPostToolUse()

    return HookMatcher(event=HookEventType.POST_TOOL_USE, callback=_log_tool, timeout=0)


def hook_block_dangerous_bash(
    patterns: Iterable[str] | None = None,
    additional_patterns: Iterable[str] | None = None,
) -> HookMatcher:
    """PreToolUse hook that denies shell commands matching dangerous patterns.

    Args:
        patterns: Regular expressions to block, replacing the defaults in
            ``DANGEROUS_BASH_PATTERNS``.
        additional_patterns: Extra expressions appended to the active list.

    Returns:
        A HookMatcher for shell tools (``run_bash``, ``bash``, ``run_shell_command``).

    Raises:
        ConfigurationError: If a pattern does not compile.
    """
    active = list(DANGEROUS_BASH_PATTERNS if patterns is None else patterns)
    active.extend(additional_patterns or ())
    try:
        compiled = [re.compile(p, re.IGNORECASE) for p in active]
    except re.error as e:
        raise ConfigurationError(f"Invalid dangerous command pattern: {e}") from e

    def _check_command(
        tool_name: str,
        tool_input: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> HookResultPreToolUse | None:
        command = str((tool_input or {}).get("command") or "")
        for regex in compiled:
            if regex.search(command):
                logger.warning(
                    "Blocked dangerous command",
                    tool_name=tool_name,
                    pattern=regex.pattern,
                    command=truncate_string(command, 200),
                )
                return HookResultPreToolUse(
                    permission="deny",
                    reason="Blocked: potentially dangerous command pattern detected",
                )
        return None

    return HookMatcher(
        event=HookEventType.PRE_TOOL_USE,
        pattern=BASH_TOOL_PATTERN,
        callback=_check_command,
        timeout=0,
    )


def hook_limit_file_writes(allowed_dir: str | Path) -> HookMatcher:
    """PreToolUse hook that denies file writes outside ``allowed_dir``.

    Relative tool paths resolve against the agent working directory passed
    in the hook context, falling back to the current directory.
    """
    allowed = str(Path(allowed_dir).expanduser().resolve(strict=False))

    def _check_write(
        tool_name: str,
        tool_input: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> HookResultPreToolUse | None:
        tool_input = tool_input or {}
        path = tool_input.get("path", tool_input.get("file_path"))
        working_dir = (context or {}).get("working_dir")
        if not isinstance(path, str) or not is_path_within(path, allowed, base_dir=working_dir):
            return HookResultPreToolUse(
                permission="deny",
                reason=f"File writes only allowed in: {allowed}",
            )
        return None

    return HookMatcher(
        event=HookEventType.PRE_TOOL_USE,
        pattern=WRITE_TOOL_PATTERN,
        callback=_check_write,
        timeout=0,
    )
