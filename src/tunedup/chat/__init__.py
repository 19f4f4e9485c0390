from tunedup.chat.context import (
    bound_history,
    build_context_from_build,
    build_system_prompt,
    compute_context_usage,
)
from tunedup.chat.manager import ChatContextManager
from tunedup.chat.models import (
    BuildContext,
    ChatHistory,
    ChatMessage,
    ChatReply,
    ChatThread,
    ContextUsage,
)
from tunedup.chat.store import ChatStore, InMemoryChatStore

__all__ = [
    "BuildContext",
    "ChatContextManager",
    "ChatHistory",
    "ChatMessage",
    "ChatReply",
    "ChatStore",
    "ChatThread",
    "ContextUsage",
    "InMemoryChatStore",
    "bound_history",
    "build_context_from_build",
    "build_system_prompt",
    "compute_context_usage",
]
