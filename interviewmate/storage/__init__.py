"""Persistent state for the knowledge base and the conversation log."""

from .state_store import StateStore
from .knowledge_base import KnowledgeBase, ConversationLog

__all__ = [
    "StateStore",
    "KnowledgeBase",
    "ConversationLog",
]
