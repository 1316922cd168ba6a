# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Typed results hook callbacks may return.

Returning ``None`` from a callback means "no opinion"; the registry then
moves on to the next matching hook.
"""
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from deputy.core.constants import HookEventType


class _HookResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class HookResultPreToolUse(_HookResult):
    """Result of a PreToolUse hook.

    Attributes:
        permission: "allow" or "deny". A deny rejects the tool call.
        reason: Message shown to the model when the call is denied.
        continue_: False asks the agent to stop after the current turn.
    """

    permission: Literal["allow", "deny"] = "allow"
    reason: str | None = None
    continue_: bool = Field(default=True, alias="continue")


class HookResultPostToolUse(_HookResult):
    continue_: bool = Field(default=True, alias="continue")


class HookResultUserPromptSubmit(_HookResult):
    continue_: bool = Field(default=True, alias="continue")


class HookResultPreCompact(_HookResult):
    """Result of a PreCompact hook.

    Attributes:
        continue_: False cancels the compaction.
        summary: Summary to use verbatim instead of generating one.
    """

    continue_: bool = Field(default=True, alias="continue")
    summary: str | None = None


class HookResultStop(_HookResult):
    handled: bool = True


class HookResultSubagentStop(_HookResult):
    handled: bool = True


class HookResultSessionStart(_HookResult):
    handled: bool = True


class HookResultSessionEnd(_HookResult):
    handled: bool = True


HookResult = (
    HookResultPreToolUse
    | HookResultPostToolUse
    | HookResultUserPromptSubmit
    | HookResultPreCompact
    | HookResultStop
    | HookResultSubagentStop
    | HookResultSessionStart
    | HookResultSessionEnd
)


class HookErrorRecord(BaseModel):
    """A hook failure recorded by the registry instead of being raised.

    Attributes:
        event: Event the failing hook was fired for.
        tool_name: Tool name the event was fired with, if any.
        message: Error text.
        timestamp: When the failure was recorded.
    """

    model_config = ConfigDict(frozen=True)

    event: HookEventType
    tool_name: str | None = None
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
