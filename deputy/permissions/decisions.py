# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Permission decision and evaluation context types."""
from typing import Literal

from pydantic import BaseModel, ConfigDict

from deputy.core.types import ToolAnnotations


class PermissionAllow(BaseModel):
    """Decision that lets a tool call proceed.

    Attributes:
        decision: Always "allow".
        message: Optional note, e.g. which rule allowed the call.
    """

    model_config = ConfigDict(frozen=True)

    decision: Literal["allow"] = "allow"
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return True


class PermissionDeny(BaseModel):
    """Decision that rejects a tool call.

    Attributes:
        decision: Always "deny".
        reason: Why the call was denied; shown to the model.
    """

    model_config = ConfigDict(frozen=True)

    decision: Literal["deny"] = "deny"
    reason: str

    @property
    def allowed(self) -> bool:
        return False


PermissionDecision = PermissionAllow | PermissionDeny


def allow(message: str | None = None) -> PermissionAllow:
    return PermissionAllow(message=message)


def deny(reason: str) -> PermissionDeny:
    return PermissionDeny(reason=reason)


class PermissionContext(BaseModel):
    """Context passed to the evaluator and custom permission callbacks.

    Attributes:
        working_dir: Agent working directory; relative paths resolve here.
        tool_annotations: Annotations declared by the requested tool.
    """

    model_config = ConfigDict(frozen=True)

    working_dir: str | None = None
    tool_annotations: ToolAnnotations | None = None
