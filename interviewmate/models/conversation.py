"""Conversation turn models."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict


class ChatRole(str, Enum):
    """Role of a message sent to the chat endpoint."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One role-tagged message of the conversation log."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        return cls(role=str(data["role"]), content=str(data["content"]))
