# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Logging configuration and agent event pretty-printing.

deputy logs through loguru with structured extras. ``configure_logging``
installs a colored stderr handler; ``log_agent_event`` renders run events
for interactive use.
"""

import json
import sys
from typing import TYPE_CHECKING

from loguru import logger

from deputy.agent.events import (
    AgentEvent,
    StartEvent,
    StopEvent,
    TextCompleteEvent,
    ToolEndEvent,
    ToolStartEvent,
    WarningEvent,
)
from deputy.core.constants import StopReason
from deputy.core.utils import format_cost, truncate_string


if TYPE_CHECKING:
    from loguru import Record


PALETTE = {
    "amber": "#F2B134",  # Warnings, tool calls
    "green": "#4F9D69",  # Success, completed
    "slate": "#7C8B93",  # Secondary text, debug
    "dim": "#4B565C",  # Separators, trace
    "ivory": "#F1EFE6",  # Primary text
    "red": "#C0392B",  # Errors, denials
    "blue": "#4A90C2",  # Info, identifiers
}

RESET = "\033[0m"


def _log_format(record: "Record") -> str:
    """Build the loguru format string for a record.

    Args:
        record: Loguru record.

    Returns:
        Format string with loguru color tags and escaped structured extras.
    """
    level_colors = {
        "TRACE": f"<fg {PALETTE['dim']}>",
        "DEBUG": f"<fg {PALETTE['slate']}>",
        "INFO": f"<fg {PALETTE['blue']}>",
        "SUCCESS": f"<fg {PALETTE['green']}>",
        "WARNING": f"<fg {PALETTE['amber']}>",
        "ERROR": f"<fg {PALETTE['red']}>",
        "CRITICAL": f"<fg {PALETTE['red']}><bold>",
    }
    color = level_colors.get(record["level"].name, f"<fg {PALETTE['ivory']}>")
    close = "</>"

    fmt = (
        f"<fg {PALETTE['slate']}>{{time:HH:mm:ss}}{close}"
        f" <fg {PALETTE['dim']}>│{close} "
        f"{color}{{level: <8}}{close}"
        f"<fg {PALETTE['dim']}>│{close} "
        f"<fg {PALETTE['slate']}>{{name}}{close}"
        f"<fg {PALETTE['dim']}>:{close}"
        f"<fg {PALETTE['ivory']}>{{message}}{close}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Braces in values would be read as format fields
        extra_str = extra_str.replace("{", "{{").replace("}", "}}")
        extra_str = extra_str.replace("<", r"\<")
        fmt += f" <fg {PALETTE['slate']}>│ {extra_str}{close}"

    fmt += "\n"
    if record["exception"]:
        fmt += "{exception}\n"
    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with the deputy stderr handler.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=_log_format, colorize=True)


def _ansi_color(hex_color: str) -> str:
    """Convert a hex color ("#RRGGBB") to a 24-bit ANSI foreground escape."""
    hex_color = hex_color.lstrip("#")
    r, g, b = int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)
    return f"\033[38;2;{r};{g};{b}m"


def format_agent_event(event: AgentEvent) -> list[str]:
    """Render an event as colored lines; fragments and empty events render nothing."""
    amber = _ansi_color(PALETTE["amber"])
    green = _ansi_color(PALETTE["green"])
    blue = _ansi_color(PALETTE["blue"])
    slate = _ansi_color(PALETTE["slate"])
    red = _ansi_color(PALETTE["red"])
    ivory = _ansi_color(PALETTE["ivory"])
    bar = f"  {slate}│{RESET}"

    lines: list[str] = []

    if isinstance(event, StartEvent):
        lines.append(f"  {blue}▶ Task{RESET}")
        lines.append(f"{bar} {ivory}{truncate_string(event.task, 120)}{RESET}")

    elif isinstance(event, TextCompleteEvent):
        lines.append(f"  {blue}◆ Assistant{RESET}")
        for line in event.text.split("\n"):
            lines.append(f"{bar} {ivory}{truncate_string(line, 120, '…')}{RESET}")

    elif isinstance(event, ToolStartEvent):
        lines.append(f"  {amber}⚡ Tool: {event.tool_name}{RESET}")
        if event.tool_input:
            try:
                input_lines = json.dumps(event.tool_input, indent=2).split("\n")
            except (TypeError, ValueError):
                input_lines = [str(event.tool_input)[:200]]
            for line in input_lines[:10]:
                lines.append(f"{bar} {slate}{line}{RESET}")
            if len(input_lines) > 10:
                lines.append(f"{bar} {slate}... ({len(input_lines) - 10} more lines){RESET}")

    elif isinstance(event, ToolEndEvent):
        if event.tool_error is not None:
            error = truncate_string(event.tool_error, 200)
            lines.append(f"  {red}✗ {event.tool_name}: {error}{RESET}")
        else:
            preview = truncate_string(str(event.tool_result), 120, "…")
            lines.append(f"  {green}✓ {event.tool_name}{RESET} {slate}{preview}{RESET}")

    elif isinstance(event, WarningEvent):
        lines.append(f"  {amber}! {event.message}{RESET}")

    elif isinstance(event, StopEvent):
        ok = event.reason == StopReason.COMPLETE
        color = green if ok else red
        lines.append(f"  {color}{'✓' if ok else '✗'} Stopped: {event.reason}{RESET}")
        stats = f" {slate}•{RESET} ".join(
            f"{amber}{part}{RESET}"
            for part in (f"{event.total_turns} turns", format_cost(event.cost.total))
        )
        lines.append(f"{bar} {stats}")

    return lines


def log_agent_event(event: AgentEvent) -> None:
    """Pretty-print an agent event to stderr, next to loguru output."""
    lines = format_agent_event(event)
    if lines:
        sys.stderr.write("\n".join(lines) + "\n")
        sys.stderr.flush()
