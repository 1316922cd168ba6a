# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Mutable state of a single agent run."""
from collections import deque
from dataclasses import dataclass, field

from deputy.agent.events import ToolEndEvent, ToolStartEvent, WarningEvent
from deputy.core.constants import StopReason


@dataclass
class RunState:
    """Per-run bookkeeping owned by the agent while ``run`` is active.

    A new instance is created for every run, so a stop requested by a hook
    never leaks into the next run.

    Attributes:
        turn: Number of the turn in progress (0 before the first turn).
        should_stop: Set by hooks to end the run at the next check.
        stop_reason: Reason recorded with ``should_stop``.
        last_hash: Digest of the previous turn's response text.
        pending: Tool and denial events raised while the chat ran tools, not yet
            emitted.
    """

    turn: int = 0
    should_stop: bool = False
    stop_reason: StopReason | None = None
    last_hash: str | None = None
    pending: deque[ToolStartEvent | ToolEndEvent | WarningEvent] = field(default_factory=deque)

    def request_stop(self, reason: StopReason = StopReason.HOOK_REQUESTED_STOP) -> None:
        if not self.should_stop:
            self.should_stop = True
            self.stop_reason = reason

    def drain(self) -> list[ToolStartEvent | ToolEndEvent | WarningEvent]:
        events = list(self.pending)
        self.pending.clear()
        return events
