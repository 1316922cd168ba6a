# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/core/constants.py
"""Constants used across the deputy codebase."""

from enum import StrEnum


class ToolName(StrEnum):
    """Tool names the permission evaluator knows how to classify."""

    READ_FILE = "read_file"
    LIST_FILES = "list_files"
    WRITE_FILE = "write_file"
    RUN_BASH = "run_bash"
    BASH = "bash"
    RUN_SHELL_COMMAND = "run_shell_command"
    RUN_CODE = "run_code"
    RUN_PYTHON = "run_python"
    WEB_SEARCH = "web_search"
    WEB_FETCH = "web_fetch"
    INSTALL_PACKAGE = "install_package"
    REQUEST_PERMISSION = "request_permission"
    ASK_USER = "ask_user"
    DELEGATE_TO_AGENT = "delegate_to_agent"


# Tool name prefix some tool bundles use (e.g. "tool_read_file")
TOOL_NAME_PREFIX = "tool_"

READ_TOOLS: frozenset[str] = frozenset({ToolName.READ_FILE, ToolName.LIST_FILES})
WRITE_TOOLS: frozenset[str] = frozenset({ToolName.WRITE_FILE})
SHELL_TOOLS: frozenset[str] = frozenset({
    ToolName.RUN_BASH,
    ToolName.BASH,
    ToolName.RUN_SHELL_COMMAND,
})
CODE_TOOLS: frozenset[str] = frozenset({ToolName.RUN_CODE, ToolName.RUN_PYTHON})
WEB_TOOLS: frozenset[str] = frozenset({ToolName.WEB_SEARCH, ToolName.WEB_FETCH})
INSTALL_TOOLS: frozenset[str] = frozenset({ToolName.INSTALL_PACKAGE})


def normalize_tool_name(tool_name: str) -> str:
    """Strip the optional ``tool_`` prefix from a tool name."""
    if tool_name.startswith(TOOL_NAME_PREFIX):
        return tool_name[len(TOOL_NAME_PREFIX):]
    return tool_name


class PermissionMode(StrEnum):
    """Overall behavior of tool permission checking.

    Attributes:
        DEFAULT: Check each tool against the policy fields.
        READONLY: Allow only read-only tools.
        ACCEPT_EDITS: Auto-accept file write tools.
        BYPASS: Allow every tool.
    """

    DEFAULT = "default"
    READONLY = "readonly"
    ACCEPT_EDITS = "acceptEdits"
    BYPASS = "bypassPermissions"


PERMISSION_MODE_ALIASES: dict[str, PermissionMode] = {
    "bypass": PermissionMode.BYPASS,
    "accept_edits": PermissionMode.ACCEPT_EDITS,
}


class HookEventType(StrEnum):
    """Lifecycle events hooks can be registered for."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"


class StopReason(StrEnum):
    """Terminal classification of why a run ended."""

    COMPLETE = "complete"
    MAX_TURNS = "max_turns"
    COST_LIMIT = "cost_limit"
    HOOK_REQUESTED_STOP = "hook_requested_stop"
    ERROR = "error"


DEFAULT_MAX_TURNS = 25

# Fraction of max_cost_usd at which a cost warning is emitted
COST_WARNING_THRESHOLD = 0.9

# Tool names the dangerous-shell hook applies to
BASH_TOOL_PATTERN = r"^(tool_)?(run_bash|bash|run_shell_command)$"

# File write tools the directory-limit hook applies to
WRITE_TOOL_PATTERN = r"^(tool_)?write_file$"

# Dangerous shell command patterns (matched case-insensitively)
DANGEROUS_BASH_PATTERNS: tuple[str, ...] = (
    # Destructive file operations
    r"\brm\s+(-[a-z]*\s+)*-[a-z]*[rf]",
    r"\bmkfs\b",
    r"\bdd\s+if=",
    r">\s*/dev/(sd|nvme|hd)",
    r"\bshred\b",
    # Privilege escalation
    r"\bsudo\b",
    r"\bsu\b(\s+-)?(\s|$)",
    r"\bdoas\b",
    r"\bchmod\s+(-R\s+)?(777|\+s|u\+s)",
    r"\bchown\s+root",
    # Dynamic code execution
    r"\beval\b",
    r"\bexec\b",
    r"`[^`]*`",
    r"\$\(",
    r"\bsource\s+/dev/",
    # Process manipulation
    r"\bkill\s+-9\b",
    r"\bkillall\b",
    r"\bpkill\b",
    # Network exfiltration and reverse shells
    r"\bcurl\b.*(-X\s*POST|--data|-d\s|--upload-file|-T\s|-F\s)",
    r"\bwget\b.*--post",
    r"\b(nc|ncat|netcat)\b.*-e\b",
    r"/dev/(tcp|udp)/",
    r"\b(curl|wget)\b.*\|\s*(ba|z)?sh\b",
    # System modification
    r"\bcrontab\b",
    r"\bsystemctl\b",
    r"\b(shutdown|reboot|halt|poweroff)\b",
    r"\biptables\b",
    # Credential access
    r"/etc/(passwd|shadow|sudoers)",
    r"~?/?\.ssh/",
    r"\.aws/credentials",
    r"(^|[\s/])\.env\b",
    # Encoding and obfuscation
    r"\bbase64\s+(-d|--decode)",
    r"\\x[0-9a-f]{2}",
    r"\$'\\",
    r"\bxxd\s+-r",
    r"\$\{?[A-Za-z_]\w*\}?\$\{?[A-Za-z_]",
    r"^\s*\$\{?[A-Za-z_]\w*\}?(\s|$)",
    # Shell escapes and aliasing
    r"\b(python|python3|perl|ruby)\s+-c\b",
    r"\balias\s+\w+=",
    r"\bfunction\s+\w+\s*\(",
)
