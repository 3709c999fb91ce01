"""Interview mode: live transcript, auto-submit and appended assistant replies."""

import logging
from typing import Callable, Optional

from ..audio.capture import AudioCapture
from ..chat.auto_submit import AutoSubmitScheduler
from ..chat.client import ChatClient
from ..chat.context import ContextAssembler
from ..config import InterviewMateConfig, ProviderSettings
from ..errors import (
    CaptureError,
    ConfigurationError,
    InterviewMateError,
    TranscriptionChannelError,
)
from ..storage.knowledge_base import KnowledgeBase, ConversationLog
from ..transcription.accumulator import TranscriptAccumulator
from ..transcription.base import AbstractTranscriptionChannel
from ..transcription.google_backend import GoogleStreamingChannel
from ..transcription.publisher import TranscriptPublisher
from ..ui.display import AppendRenderer, DisplayState
from .error_reporter import ErrorReporter

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[ProviderSettings], AbstractTranscriptionChannel]


class InterviewService:
    """Coordinates capture, transcript accumulation, auto-submit and chat requests.

    At most one chat request is in flight. The processed cursor advances
    only after a request succeeded and its turns were recorded, and only to
    the buffer length at submission time; fragments that arrive while a
    request is in flight belong to the next submission.
    """

    def __init__(self,
                 config: InterviewMateConfig,
                 knowledge_base: KnowledgeBase,
                 conversation_log: ConversationLog,
                 chat_client: ChatClient,
                 errors: ErrorReporter,
                 publisher: Optional[TranscriptPublisher] = None,
                 channel_factory: Optional[ChannelFactory] = None,
                 assembler: Optional[ContextAssembler] = None):
        """Initialize interview service.

        Args:
            config: Application configuration
            knowledge_base: Items prepended to every request
            conversation_log: Prior turns, extended after each successful request
            chat_client: Chat endpoint client
            errors: Sink for user-visible errors
            publisher: Fragment publisher the transcription channel delivers to
            channel_factory: Builds a transcription channel from the provider settings
            assembler: Message assembler
        """
        self.config = config
        self.knowledge_base = knowledge_base
        self.conversation_log = conversation_log
        self.chat_client = chat_client
        self.errors = errors
        self.publisher = publisher or TranscriptPublisher()
        self.channel_factory = channel_factory or self._create_google_channel
        self.assembler = assembler or ContextAssembler()

        self.accumulator = TranscriptAccumulator(self.publisher.topic)
        self.display = DisplayState()
        self.renderer = AppendRenderer(self.display)
        self.capture: Optional[AudioCapture] = None
        self.is_configured = False
        self._in_flight = False

        self.scheduler = AutoSubmitScheduler(
            self.accumulator,
            submit=self.ask,
            is_busy=lambda: self._in_flight,
            quiet_interval=config.get('auto_submit.quiet_interval_seconds', 2.0),
            poll_interval=config.get('auto_submit.poll_interval_seconds', 1.0),
        )
        logger.info("InterviewService initialized")

    @property
    def is_recording(self) -> bool:
        return self.capture is not None and self.capture.is_recording

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    def check_configuration(self) -> bool:
        """Verify provider credentials; a missing one shows the settings banner."""
        try:
            settings = self.config.get_settings()
        except ConfigurationError as e:
            self.errors.report(e)
            self.is_configured = False
            return False

        self.is_configured = settings.is_complete
        if not self.is_configured:
            self.errors.report(ConfigurationError("Chat API key or transcription credentials missing"))
        else:
            self.errors.clear_banner()
        return self.is_configured

    async def start_recording(self) -> bool:
        """Start capturing audio into the transcript.

        Returns:
            True if capture is running
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return True
        if not self.check_configuration():
            return False

        settings = self.config.get_settings()
        channel = self.channel_factory(settings)
        self.capture = AudioCapture(
            channel,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            block_size=self.config.get('audio.block_size', 4096),
            channels=self.config.get('audio.channels', 1),
            input_device_index=self.config.get('audio.input_device_index'),
            on_error=self.errors.report,
        )
        try:
            await self.capture.start(settings.transcription_api_key)
        except (CaptureError, TranscriptionChannelError) as e:
            self.errors.report(e)
            self.capture = None
            return False

        logger.info("Recording started")
        return True

    async def stop_recording(self) -> None:
        capture = self.capture
        self.capture = None
        if capture is not None:
            await capture.stop()
            logger.info("Recording stopped")

    def toggle_auto_submit(self) -> bool:
        return self.scheduler.toggle()

    async def ask(self, content: Optional[str] = None) -> bool:
        """Send content to the chat endpoint and append the reply.

        Args:
            content: Explicit text to send. None sends the unsent transcript span
                     and advances the processed cursor on success.

        Returns:
            True if a reply was received and recorded
        """
        if self._in_flight:
            logger.info("Chat request already in flight, ignoring submission")
            return False

        from_transcript = content is None
        submitted_upto = len(self.accumulator.text)
        if from_transcript:
            content = self.accumulator.unsent_text()
        content = content.strip()
        if not content:
            return False

        self._in_flight = True
        try:
            settings = self.config.get_settings()
            messages = self.assembler.build_interview_messages(
                self.knowledge_base.items, self.conversation_log.turns, content)
            reply = await self.chat_client.chat_completion(settings, messages)

            reply = reply.strip()
            self.conversation_log.record_exchange(content, reply)
            self.renderer.append(reply)
            if from_transcript:
                self.accumulator.mark_processed(submitted_upto)
            logger.info(f"Chat reply received ({len(reply)} chars)")
            return True
        except InterviewMateError as e:
            self.errors.report(e)
            return False
        finally:
            self._in_flight = False
            self.scheduler.notify_completed()

    def set_transcript(self, text: str) -> None:
        self.accumulator.set_text(text)

    def clear_transcript(self) -> None:
        self.accumulator.clear()

    def clear_display(self) -> None:
        self.renderer.clear()

    def recording_seconds(self) -> float:
        if self.capture is None:
            return 0.0
        return self.capture.get_recording_stats().duration_seconds

    async def close(self) -> None:
        self.scheduler.close()
        await self.stop_recording()
        self.accumulator.close()
        logger.info("InterviewService closed")

    def _create_google_channel(self, settings: ProviderSettings) -> AbstractTranscriptionChannel:
        return GoogleStreamingChannel(
            on_fragment=self.publisher.get_callback(),
            on_error=self._on_channel_error,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            primary_language=settings.primary_language,
            secondary_language=settings.secondary_language,
        )

    def _on_channel_error(self, error: Exception) -> None:
        if self.capture is None:
            return
        self.capture.abort(TranscriptionChannelError(f"Transcription stream failed: {error}"))
        self.capture = None
