"""Builds the ordered message list sent to the chat endpoint."""

import logging
from typing import Any, Dict, List, Sequence

from ..models.conversation import Turn, ChatRole

logger = logging.getLogger(__name__)

ASSISTANT_PERSONA = (
    "You are a highly helpful personal assistant. You can remember our conversations "
    "and carefully analyze the images and files I upload to help me accurately prepare "
    "for my upcoming interviews."
)

IMAGE_DATA_PREFIX = "data:image"

Message = Dict[str, Any]


class ContextAssembler:
    """Assembles knowledge-base items, history and new content into chat messages."""

    def __init__(self, system_prompt: str = ASSISTANT_PERSONA):
        self.system_prompt = system_prompt

    @staticmethod
    def to_message(role: str, content: str) -> Message:
        """Build one message, mapping image data URLs to an image_url content part."""
        if content.startswith(IMAGE_DATA_PREFIX):
            return {
                "role": role,
                "content": [{"type": "image_url", "image_url": {"url": content}}],
            }
        return {"role": role, "content": content}

    def build_interview_messages(self,
                                 knowledge_base: Sequence[str],
                                 history: Sequence[Turn],
                                 new_content: str) -> List[Message]:
        """Knowledge-base items, then the conversation, then the new transcript span."""
        messages = [self.to_message(ChatRole.USER.value, item) for item in knowledge_base]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.append({"role": ChatRole.USER.value, "content": new_content})
        logger.debug(f"Assembled {len(messages)} interview messages")
        return messages

    def build_knowledge_chat_messages(self,
                                      knowledge_base: Sequence[str],
                                      history: Sequence[Turn],
                                      file_contents: Sequence[str],
                                      user_message: str) -> List[Message]:
        """System persona, knowledge base, conversation, uploaded files, then the user message."""
        messages: List[Message] = [{"role": ChatRole.SYSTEM.value, "content": self.system_prompt}]
        messages.extend(self.to_message(ChatRole.USER.value, item) for item in knowledge_base)
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.extend(self.to_message(ChatRole.USER.value, content) for content in file_contents)
        messages.append({"role": ChatRole.USER.value, "content": user_message})
        logger.debug(f"Assembled {len(messages)} knowledge chat messages "
                     f"({len(file_contents)} files)")
        return messages
