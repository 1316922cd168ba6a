"""deputy: turn a chat session into a permission-gated, tool-using agent."""

from deputy.agent import Agent, AgentDefinition, AgentResult, LeadAgent
from deputy.chat import ChatSession, LangChainChat, Tool, ToolRejection, create_tool, reject_tool
from deputy.config import load_settings
from deputy.core.constants import HookEventType, PermissionMode, StopReason
from deputy.hooks import HookMatcher, HookRegistry
from deputy.permissions import (
    Permissions,
    permissions_full,
    permissions_readonly,
    permissions_standard,
)


__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentDefinition",
    "AgentResult",
    "ChatSession",
    "HookEventType",
    "HookMatcher",
    "HookRegistry",
    "LangChainChat",
    "LeadAgent",
    "PermissionMode",
    "Permissions",
    "StopReason",
    "Tool",
    "ToolRejection",
    "create_tool",
    "load_settings",
    "permissions_full",
    "permissions_readonly",
    "permissions_standard",
    "reject_tool",
    "__version__",
]
