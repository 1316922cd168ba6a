# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/interactive.py
"""Human-in-the-loop input.

The agent asks the user through an injected :class:`UserInputProvider`.
Without one, a rich console prompt is used when stdin is a terminal;
otherwise asking fails with :class:`UserInputUnavailableError`.
"""
import asyncio
import inspect
import sys
from collections.abc import Awaitable, Callable, Sequence
from typing import Literal, Protocol, runtime_checkable

from loguru import logger
from rich.console import Console
from rich.prompt import Confirm, Prompt

from deputy.chat.base import Tool, ToolRejection
from deputy.core.constants import ToolName
from deputy.core.exceptions import UserInputUnavailableError
from deputy.core.types import ToolAnnotations


QuestionKind = Literal["text", "choice", "confirm"]
QUESTION_KINDS: tuple[str, ...] = ("text", "choice", "confirm")


@runtime_checkable
class UserInputProvider(Protocol):
    """Source of answers to questions the agent asks the user.

    ``ask`` may be a plain method or a coroutine method.
    """

    def ask(
        self,
        question: str,
        choices: Sequence[str] | None = None,
        kind: QuestionKind = "text",
    ) -> str | Awaitable[str]: ...


class CallbackInputProvider:
    """Adapts a plain function ``fn(question, choices, kind)`` to a provider."""

    def __init__(
        self, fn: Callable[[str, Sequence[str] | None, str], str | Awaitable[str]]
    ) -> None:
        if not callable(fn):
            raise TypeError("fn must be callable")
        self._fn = fn

    async def ask(
        self,
        question: str,
        choices: Sequence[str] | None = None,
        kind: QuestionKind = "text",
    ) -> str:
        result = self._fn(question, choices, kind)
        if inspect.isawaitable(result):
            result = await result
        return str(result)


class ConsoleInputProvider:
    """Asks on the terminal with rich prompts.

    - text: free-form answer
    - choice: numbered options; a number picks an option, anything else is
      taken as a free-form answer
    - confirm: yes/no, answered as "yes" or "no"
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def ask(
        self,
        question: str,
        choices: Sequence[str] | None = None,
        kind: QuestionKind = "text",
    ) -> str:
        self.console.print(f"\n[bold]Agent question:[/bold] {question}")

        if kind == "confirm":
            return "yes" if Confirm.ask("Confirm", console=self.console) else "no"

        if kind == "choice" and choices:
            for i, choice in enumerate(choices, start=1):
                self.console.print(f"  {i}. {choice}")
            self.console.print("Enter number or type your own response:")
            while True:
                answer = Prompt.ask(">", console=self.console).strip()
                if answer.isdigit():
                    idx = int(answer)
                    if 1 <= idx <= len(choices):
                        return choices[idx - 1]
                    self.console.print(
                        f"[yellow]Please enter a number between 1 and {len(choices)}[/yellow]"
                    )
                elif answer:
                    return answer
                else:
                    self.console.print("[yellow]Please enter a response[/yellow]")

        return Prompt.ask(">", console=self.console, default="", show_default=False).strip()


def resolve_input_provider(provider: UserInputProvider | None = None) -> UserInputProvider:
    """Return ``provider``, or a console provider when running in a terminal.

    Raises:
        UserInputUnavailableError: If no provider is given and stdin is not a TTY.
    """
    if provider is not None:
        return provider
    if sys.stdin is not None and sys.stdin.isatty():
        return ConsoleInputProvider()
    raise UserInputUnavailableError(
        "No user input provider configured and no interactive terminal is available"
    )


async def request_input(
    provider: UserInputProvider,
    question: str,
    choices: Sequence[str] | None = None,
    kind: QuestionKind = "text",
) -> str:
    """Ask through ``provider``; blocking providers run in a worker thread."""
    if kind not in QUESTION_KINDS:
        raise ValueError(
            f"Invalid question kind: {kind!r}. Must be one of: {', '.join(QUESTION_KINDS)}"
        )
    if inspect.iscoroutinefunction(provider.ask):
        answer = await provider.ask(question, choices, kind)
    else:
        answer = await asyncio.to_thread(provider.ask, question, choices, kind)
        if inspect.isawaitable(answer):
            answer = await answer
    return str(answer)


ASK_USER_PARAMETERS = {
    "type": "object",
    "properties": {
        "question": {
            "type": "string",
            "description": "The question to ask the user. Be clear and specific.",
        },
        "choices": {
            "type": "array",
            "items": {"type": "string"},
            "description": (
                "Optional list of choices for the user to pick from. Only used when "
                "type is 'choice'. The user can also type a custom response."
            ),
        },
        "type": {
            "type": "string",
            "enum": list(QUESTION_KINDS),
            "description": "'text' = free-form, 'choice' = pick from options, 'confirm' = yes/no",
        },
    },
    "required": ["question"],
}


def create_ask_user_tool(provider: UserInputProvider | None = None) -> Tool:
    """Build the read-only ``ask_user`` tool.

    The provider is resolved when the tool is called, so a tool created
    without a provider still works in an interactive terminal.
    """

    async def ask_user(
        question: str,
        choices: list[str] | None = None,
        type: str = "text",  # noqa: A002 - argument name seen by the model
    ) -> str | ToolRejection:
        if type not in QUESTION_KINDS:
            return ToolRejection(
                reason=f"Invalid type. Must be one of: {', '.join(QUESTION_KINDS)}"
            )
        if type == "choice" and not choices:
            return ToolRejection(reason="choices must be provided when type is 'choice'")
        try:
            answer = await request_input(
                resolve_input_provider(provider), question, choices, type  # type: ignore[arg-type]
            )
        except Exception as e:
            logger.warning("Failed to get user input: {error}", error=str(e))
            return ToolRejection(reason=f"Failed to get user input: {e}")
        return f"User responded: {answer}"

    return Tool(
        name=ToolName.ASK_USER.value,
        description=(
            "Ask the user a question and get their response. Use this when you need "
            "clarification, confirmation, or to present choices. Types: 'text' for "
            "free-form input, 'choice' to present options, 'confirm' for yes/no questions."
        ),
        fn=ask_user,
        parameters=ASK_USER_PARAMETERS,
        annotations=ToolAnnotations(read_only=True, destructive=False, open_world=False),
    )
