"""Knowledge base and conversation log, persisted on every mutation."""

import logging
from typing import List, Sequence

from ..models.conversation import Turn, ChatRole
from .state_store import StateStore

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_KEY = "knowledgeBase"
CONVERSATIONS_KEY = "conversations"


class KnowledgeBase:
    """User-curated, append-only list of text or image data-URL items."""

    def __init__(self, store: StateStore):
        self.store = store
        self._items: List[str] = [str(item) for item in store.get(KNOWLEDGE_BASE_KEY, [])]
        logger.info(f"KnowledgeBase loaded with {len(self._items)} items")

    @property
    def items(self) -> List[str]:
        return list(self._items)

    def add(self, content: str) -> None:
        """Append an item and persist."""
        items = self._items + [content]
        self.store.set(KNOWLEDGE_BASE_KEY, items)
        self._items = items
        logger.info(f"Added knowledge base item #{len(self._items)} ({len(content)} chars)")

    def replace(self, items: Sequence[str]) -> None:
        """Replace all items and persist."""
        items = list(items)
        self.store.set(KNOWLEDGE_BASE_KEY, items)
        self._items = items

    def __len__(self) -> int:
        return len(self._items)


class ConversationLog:
    """Ordered user/assistant turns; append-only apart from ``clear``.

    Turns change in memory only after they were written to the store.
    """

    def __init__(self, store: StateStore):
        self.store = store
        self._turns: List[Turn] = [Turn.from_dict(t) for t in store.get(CONVERSATIONS_KEY, [])]
        logger.info(f"ConversationLog loaded with {len(self._turns)} turns")

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    def record_exchange(self, user_content: str, assistant_content: str) -> None:
        """Append the submitted user content and the trimmed assistant reply, in that order."""
        self._persist(self._turns + [
            Turn(role=ChatRole.USER.value, content=user_content),
            Turn(role=ChatRole.ASSISTANT.value, content=assistant_content.strip()),
        ])

    def clear(self) -> None:
        self._persist([])
        logger.info("Conversation log cleared")

    def _persist(self, turns: List[Turn]) -> None:
        self.store.set(CONVERSATIONS_KEY, [t.to_dict() for t in turns])
        self._turns = turns

    def __len__(self) -> int:
        return len(self._turns)
