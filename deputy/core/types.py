# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared value types for deputy.

Contains the pydantic models that flow between the permission evaluator,
the hook registry, the chat collaborator and the conversation driver.
"""
from pydantic import BaseModel, ConfigDict, Field


class ToolAnnotations(BaseModel):
    """Behavioral hints declared by a tool.

    Unset hints are ``None`` and are treated as false.

    Attributes:
        read_only: Tool does not modify its environment.
        destructive: Tool may perform destructive updates.
        open_world: Tool may reach external resources (network, APIs).
        idempotent: Repeated calls with the same arguments have no extra effect.
    """

    model_config = ConfigDict(frozen=True)

    read_only: bool | None = None
    destructive: bool | None = None
    open_world: bool | None = None
    idempotent: bool | None = None


class Cost(BaseModel):
    """Cost snapshot for a conversation.

    Attributes:
        input: Input tokens consumed.
        output: Output tokens produced.
        cached: Input tokens served from the provider cache.
        total: Total cost in USD.
    """

    model_config = ConfigDict(frozen=True)

    input: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)
    cached: int = Field(default=0, ge=0)
    total: float = Field(default=0.0, ge=0.0)
