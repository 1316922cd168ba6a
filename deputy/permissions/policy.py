# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/permissions/policy.py
"""Permission policy and evaluator for agent tool calls.

A :class:`Permissions` object is the configured rule set (mode, capability
flags, allow/deny lists and resource ceilings). Its :meth:`Permissions.evaluate`
method is a pure decision function: it never raises and never mutates state.
"""
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from deputy.core.constants import (
    CODE_TOOLS,
    DEFAULT_MAX_TURNS,
    INSTALL_TOOLS,
    PERMISSION_MODE_ALIASES,
    READ_TOOLS,
    SHELL_TOOLS,
    WEB_TOOLS,
    WRITE_TOOLS,
    PermissionMode,
    ToolName,
    normalize_tool_name,
)
from deputy.core.exceptions import ConfigurationError, PathTraversalError
from deputy.permissions.decisions import (
    PermissionAllow,
    PermissionContext,
    PermissionDecision,
    PermissionDeny,
    allow,
    deny,
)
from deputy.permissions.paths import resolve_within


PermissionCallback = Callable[
    [str, Mapping[str, Any], PermissionContext], PermissionDecision | None
]
"""Custom decision function. Returning a decision short-circuits built-in rules."""


class Permissions(BaseModel):
    """Controls what an agent is allowed to do.

    This model is frozen so repeated evaluation is side-effect free.
    Use model_copy(update={...}) to derive a modified policy.

    Attributes:
        mode: Permission mode (default, readonly, acceptEdits, bypassPermissions).
        file_read: Allow file reading.
        file_write: Allow file writing. True, False, or a directory writes are restricted to.
        shell: Allow shell command execution.
        code_execution: Allow code execution tools.
        web: Allow network access tools.
        install_packages: Allow package installation.
        allowed_tools: If set, only these tool names may run.
        denied_tools: Tool names that never run. Wins over allowed_tools.
        max_turns: Maximum turns per run, consulted by the agent.
        max_cost_usd: Maximum cumulative cost in USD, consulted by the agent.
        can_use_tool: Optional custom callback consulted before the built-in rules.
    """

    model_config = ConfigDict(frozen=True)

    mode: PermissionMode = PermissionMode.DEFAULT
    file_read: bool = True
    file_write: bool | str = True
    shell: bool = False
    code_execution: bool = True
    web: bool = False
    install_packages: bool = False
    allowed_tools: tuple[str, ...] | None = None
    denied_tools: tuple[str, ...] | None = None
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)
    max_cost_usd: float | None = Field(default=None, gt=0)
    can_use_tool: PermissionCallback | None = None

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid permission policy: {e}") from e

    @field_validator("mode", mode="before")
    @classmethod
    def _resolve_mode_alias(cls, value: Any) -> Any:
        if isinstance(value, str) and value in PERMISSION_MODE_ALIASES:
            return PERMISSION_MODE_ALIASES[value]
        return value

    @field_validator("file_write", mode="before")
    @classmethod
    def _validate_file_write(cls, value: Any) -> Any:
        if isinstance(value, Path):
            value = str(value)
        if isinstance(value, str) and not value.strip():
            raise ValueError("file_write directory must not be empty")
        return value

    def evaluate(
        self,
        tool_name: str,
        tool_input: Mapping[str, Any] | None = None,
        context: PermissionContext | Mapping[str, Any] | None = None,
    ) -> PermissionDecision:
        """Decide whether a tool call may execute.

        Never raises. Any error while evaluating becomes a deny decision
        carrying the error message.

        Args:
            tool_name: Name of the requested tool.
            tool_input: Arguments the model passed to the tool.
            context: Working directory and tool annotations.

        Returns:
            PermissionAllow or PermissionDeny.
        """
        try:
            if context is None:
                context = PermissionContext()
            elif not isinstance(context, PermissionContext):
                context = PermissionContext.model_validate(dict(context))
            return self._evaluate(tool_name, tool_input or {}, context)
        except Exception as e:
            logger.warning(
                "Permission evaluation failed, denying: {error}",
                error=str(e),
                tool_name=tool_name,
            )
            return deny(f"Permission check failed: {e}")

    # Short alias
    check = evaluate

    def _evaluate(
        self,
        tool_name: str,
        tool_input: Mapping[str, Any],
        context: PermissionContext,
    ) -> PermissionDecision:
        name = normalize_tool_name(tool_name)

        # The model must always be able to ask for more access
        if name == ToolName.REQUEST_PERMISSION:
            return allow("Permission escalation requests are always allowed")

        if self.can_use_tool is not None:
            result = self.can_use_tool(tool_name, tool_input, context)
            if isinstance(result, PermissionAllow | PermissionDeny):
                return result

        if self.denied_tools is not None and (
            tool_name in self.denied_tools or name in self.denied_tools
        ):
            return deny(f"Tool '{tool_name}' is in the denied tools list")

        if self.allowed_tools is not None and not (
            tool_name in self.allowed_tools or name in self.allowed_tools
        ):
            return deny(f"Tool '{tool_name}' is not in the allowed tools list")

        if self.mode == PermissionMode.BYPASS:
            return allow()

        if self.mode == PermissionMode.READONLY:
            return self._check_readonly(name, context)

        return self._check_tool_specific(name, tool_input, context)

    def _check_readonly(self, name: str, context: PermissionContext) -> PermissionDecision:
        annotations = context.tool_annotations
        if annotations is not None:
            if annotations.read_only:
                return allow()
            if annotations.destructive:
                return deny("Permission denied: tool is destructive and readonly mode is active")
        if name in READ_TOOLS and self.file_read:
            return allow()
        return deny("Permission denied: readonly mode only allows read-only tools")

    def _check_tool_specific(
        self,
        name: str,
        tool_input: Mapping[str, Any],
        context: PermissionContext,
    ) -> PermissionDecision:
        if name in READ_TOOLS:
            return allow() if self.file_read else deny("File reading is not allowed")

        if name in WRITE_TOOLS:
            return self._check_file_write(tool_input, context)

        if name in SHELL_TOOLS:
            return allow() if self.shell else deny("Shell command execution is not allowed")

        if name in CODE_TOOLS:
            return allow() if self.code_execution else deny("Code execution is not allowed")

        if name in WEB_TOOLS:
            return allow() if self.web else deny("Web access is not allowed")

        if name in INSTALL_TOOLS:
            return allow() if self.install_packages else deny("Package installation is not allowed")

        # Unknown tools are judged by their annotations
        annotations = context.tool_annotations
        if annotations is not None:
            if annotations.destructive and self.file_write is False and not self.shell:
                return deny("Tool is marked as destructive and write operations are disabled")
            if annotations.read_only:
                return allow()
            if annotations.open_world and not self.web:
                return deny("Tool can access external resources but web access is disabled")

        return allow()

    def _check_file_write(
        self,
        tool_input: Mapping[str, Any],
        context: PermissionContext,
    ) -> PermissionDecision:
        # acceptEdits ignores the boolean flag but keeps directory scoping
        if self.file_write is False and self.mode != PermissionMode.ACCEPT_EDITS:
            return deny("File writing is not allowed")

        if isinstance(self.file_write, str):
            path = tool_input.get("path", tool_input.get("file_path"))
            if path is None:
                return deny(f"File writing only allowed in: {self.file_write} (no path given)")
            try:
                resolve_within(path, self.file_write, base_dir=context.working_dir)
            except PathTraversalError as e:
                return deny(f"File writing only allowed in: {self.file_write}. {e}")

        return allow()


def permissions_readonly(max_turns: int = DEFAULT_MAX_TURNS) -> Permissions:
    """Policy that only allows reading files."""
    return Permissions(
        mode=PermissionMode.READONLY,
        file_read=True,
        file_write=False,
        shell=False,
        code_execution=False,
        web=False,
        install_packages=False,
        max_turns=max_turns,
    )


def permissions_standard(
    working_dir: str | Path | None = None,
    max_turns: int = DEFAULT_MAX_TURNS,
    max_cost_usd: float | None = None,
) -> Permissions:
    """Policy for most use cases.

    Allows reading, writing inside ``working_dir`` (default: cwd) and code
    execution. Denies shell, web access and package installation.
    """
    return Permissions(
        mode=PermissionMode.DEFAULT,
        file_read=True,
        file_write=str(working_dir or Path.cwd()),
        shell=False,
        code_execution=True,
        web=False,
        install_packages=False,
        max_turns=max_turns,
        max_cost_usd=max_cost_usd,
    )


def permissions_full(max_turns: int = 50, max_cost_usd: float | None = None) -> Permissions:
    """Policy that allows every tool. Use with caution."""
    return Permissions(
        mode=PermissionMode.BYPASS,
        file_read=True,
        file_write=True,
        shell=True,
        code_execution=True,
        web=True,
        install_packages=True,
        max_turns=max_turns,
        max_cost_usd=max_cost_usd,
    )
