"""Knowledge-base chat: curated items, file uploads and revealed replies."""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..chat.client import ChatClient
from ..chat.context import ContextAssembler
from ..config import InterviewMateConfig
from ..errors import DocumentParseError, InterviewMateError, StorageError, UploadLimitError
from ..models.upload import UploadedFile
from ..storage.knowledge_base import KnowledgeBase, ConversationLog
from ..ui.display import DisplayState, RevealRenderer
from .error_reporter import ErrorReporter
from .uploads import UploadStaging, guess_mime_type, read_file_content

logger = logging.getLogger(__name__)


class KnowledgeChatService:
    """Chat with an assistant that sees the knowledge base and uploaded files."""

    def __init__(self,
                 config: InterviewMateConfig,
                 knowledge_base: KnowledgeBase,
                 conversation_log: ConversationLog,
                 chat_client: ChatClient,
                 errors: ErrorReporter,
                 staging: Optional[UploadStaging] = None,
                 assembler: Optional[ContextAssembler] = None):
        self.config = config
        self.knowledge_base = knowledge_base
        self.conversation_log = conversation_log
        self.chat_client = chat_client
        self.errors = errors
        self.staging = staging or UploadStaging()
        self.assembler = assembler or ContextAssembler()

        self.display = DisplayState()
        self.renderer = RevealRenderer(
            self.display,
            tick=config.get('render.reveal_tick_seconds', 0.035),
            pause=config.get('render.reveal_pause_seconds', 0.5),
        )
        self._in_flight = False

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    async def stage_files(self, paths: Sequence[str]) -> List[UploadedFile]:
        """Attach files to the next message.

        Files that cannot be parsed are kept with their error and skipped when
        the message is sent; the others proceed.
        """
        try:
            staged = await self.staging.stage(paths)
        except UploadLimitError as e:
            self.errors.report(e)
            return []

        for upload in staged:
            if upload.error is not None:
                self.errors.report(DocumentParseError(f"{upload.name}: {upload.error}",
                                                      user_message=f"Failed to read {upload.name}."))
        return staged

    def unstage(self, index: int) -> UploadedFile:
        return self.staging.unstage(index)

    def build_user_message(self, chat_input: str, files: Sequence[UploadedFile]) -> str:
        names = ", ".join(upload.name for upload in files)
        if chat_input.strip():
            return f"[Files: {names}] {chat_input}" if files else chat_input
        return f"Please analyze the attached files: {names}" if files else ""

    async def send(self, chat_input: str) -> bool:
        """Send the typed message with the staged files and reveal the reply.

        Returns:
            True if a reply was received and recorded
        """
        if self._in_flight:
            logger.info("Chat request already in flight, ignoring submission")
            return False

        files = self.staging.staged
        user_message = self.build_user_message(chat_input, files)
        if not user_message:
            return False

        file_contents = self.staging.usable_contents()
        messages = self.assembler.build_knowledge_chat_messages(
            self.knowledge_base.items, self.conversation_log.turns, file_contents, user_message)
        self.staging.clear()

        self._in_flight = True
        try:
            settings = self.config.get_settings()
            reply = await self.chat_client.chat_completion(settings, messages)
            reply = reply.strip()
            self.conversation_log.record_exchange(user_message, reply)
        except InterviewMateError as e:
            self.errors.report(e)
            return False
        finally:
            self._in_flight = False

        self.renderer.reveal(reply)
        logger.info(f"Knowledge chat reply received ({len(reply)} chars)")
        return True

    def clear_chat(self) -> bool:
        try:
            self.conversation_log.clear()
        except StorageError as e:
            self.errors.report(e)
            return False
        self.renderer.clear()
        return True

    def add_knowledge_text(self, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        return self._add_knowledge(text)

    async def add_knowledge_file(self, path: str) -> bool:
        """Read a document or image and add it to the knowledge base."""
        mime_type = guess_mime_type(path)
        try:
            content = await asyncio.to_thread(read_file_content, path, mime_type)
        except DocumentParseError as e:
            self.errors.report(e)
            return False
        except OSError as e:
            self.errors.report(DocumentParseError(str(e), user_message=f"Failed to read {path}."))
            return False

        return self._add_knowledge(content)

    def _add_knowledge(self, content: str) -> bool:
        try:
            self.knowledge_base.add(content)
        except StorageError as e:
            self.errors.report(e)
            return False
        return True
