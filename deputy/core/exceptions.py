# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/core/exceptions.py
"""Custom exceptions for deputy."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from deputy.agent.result import AgentResult


class DeputyError(Exception):
    """Base exception for all deputy errors."""

    pass


class ConfigurationError(DeputyError):
    """Raised when a policy, hook or agent is configured incorrectly."""

    pass


class SecurityError(DeputyError):
    """Raised when a security constraint is violated."""

    pass


class PathTraversalError(SecurityError):
    """Raised when a path traversal attempt is detected."""

    pass


class HookError(DeputyError):
    """Raised when a hook callback cannot be executed."""

    pass


class AgentBusyError(DeputyError):
    """Raised when run() is called while another run is in progress."""

    pass


class UserInputUnavailableError(DeputyError):
    """Raised when user input is requested without a provider or terminal."""

    pass


class ProviderError(DeputyError):
    """Raised when the model provider fails and the fallback also fails.

    Attributes:
        result: The partial result collected before the failure, if any.
    """

    def __init__(self, message: str, result: AgentResult | None = None) -> None:
        super().__init__(message)
        self.result = result
