"""Chat collaborator contract and the LangChain-backed implementation."""

from deputy.chat.base import (
    ChatSession,
    TokenUsage,
    Tool,
    ToolRejection,
    ToolRequest,
    ToolRequestHandler,
    ToolResult,
    ToolResultHandler,
    Turn,
    create_tool,
    reject_tool,
)
from deputy.chat.langchain import LangChainChat, TokenPricing


__all__ = [
    "ChatSession",
    "LangChainChat",
    "TokenPricing",
    "TokenUsage",
    "Tool",
    "ToolRejection",
    "ToolRequest",
    "ToolRequestHandler",
    "ToolResult",
    "ToolResultHandler",
    "Turn",
    "create_tool",
    "reject_tool",
]
