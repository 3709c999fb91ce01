"""Google Speech-to-Text streaming transcription channel."""

import asyncio
import logging
from typing import Callable, List, Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.auth import exceptions as auth_exceptions
from google.oauth2 import service_account

from .base import AbstractTranscriptionChannel
from ..errors import TranscriptionChannelError
from ..models.transcription import TranscriptFragment

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-US"


class GoogleStreamingChannel(AbstractTranscriptionChannel):
    """Streams PCM frames to Google Speech-to-Text and publishes the results.

    Google closes a stream after roughly five minutes of audio with
    OUT_OF_RANGE; the channel reopens the stream transparently while it is
    still open.
    """

    def __init__(self,
                 on_fragment: Callable[[TranscriptFragment], None],
                 on_error: Optional[Callable[[Exception], None]] = None,
                 sample_rate: int = 16000,
                 primary_language: str = "auto",
                 secondary_language: str = "",
                 enable_automatic_punctuation: bool = True,
                 model: str = "latest_long",
                 max_pending_frames: int = 256):
        """Initialize Google streaming channel.

        Args:
            on_fragment: Called for every interim or final result
            on_error: Called once if the stream fails while open
            sample_rate: Sample rate of the PCM frames in Hz
            primary_language: Language code, or 'auto' for the default
            secondary_language: Optional alternative language code
            enable_automatic_punctuation: Enable automatic punctuation
            model: Recognition model name
            max_pending_frames: Frames buffered for the stream before send_audio fails
        """
        super().__init__(on_fragment, on_error)
        self.service_name = "Google Speech-to-Text"
        self.client: Optional[speech.SpeechAsyncClient] = None
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=_language_code(primary_language),
                alternative_language_codes=_alternative_languages(secondary_language),
                enable_automatic_punctuation=enable_automatic_punctuation,
                model=model,
            ),
            interim_results=True,
        )
        self._audio_queue: Optional[asyncio.Queue] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._failure: Optional[Exception] = None
        self._open = False
        self.max_pending_frames = max_pending_frames

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, credential: str) -> None:
        """Load service-account credentials and start the recognition stream."""
        if self._open:
            logger.warning("Transcription channel already open")
            return

        if not credential:
            raise TranscriptionChannelError("Google credentials path is required")

        logger.info(f"Loading Google credentials from: {credential}")
        try:
            credentials = service_account.Credentials.from_service_account_file(credential)
            self.client = speech.SpeechAsyncClient(credentials=credentials)
        except (OSError, ValueError, auth_exceptions.GoogleAuthError) as e:
            raise TranscriptionChannelError(f"Failed to open Google Speech channel: {e}") from e

        self._audio_queue = asyncio.Queue(maxsize=self.max_pending_frames)
        self._failure = None
        self._open = True
        self._stream_task = asyncio.create_task(self._run_streams(), name="google-stt-stream")
        logger.info(f"Google Speech channel opened (project: {credentials.project_id})")

    async def send_audio(self, frame: bytes) -> None:
        if self._failure is not None:
            raise TranscriptionChannelError(f"Google Speech stream failed: {self._failure}") from self._failure
        if not self._open or self._audio_queue is None:
            raise TranscriptionChannelError("Google Speech channel is not open")
        if self._stream_task is not None and self._stream_task.done():
            raise TranscriptionChannelError("Google Speech stream is no longer running")
        try:
            self._audio_queue.put_nowait(frame)
        except asyncio.QueueFull as e:
            raise TranscriptionChannelError(
                f"Google Speech stream is not consuming audio ({self._audio_queue.qsize()} frames pending)"
            ) from e

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        logger.info("Closing Google Speech channel")

        task = self._stream_task
        self._stream_task = None
        if self._audio_queue is not None:
            # Sentinel ends the request generator so the stream finishes cleanly
            try:
                self._audio_queue.put_nowait(None)
            except asyncio.QueueFull:
                if task is not None:
                    task.cancel()

        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=2.0)
            if not done:
                task.cancel()
                logger.warning("Google Speech stream did not finish in time, cancelled")
        self._audio_queue = None
        self.client = None

    async def _run_streams(self) -> None:
        while self._open:
            try:
                responses = await self.client.streaming_recognize(requests=self._requests())
                async for response in responses:
                    self._handle_response(response)
            except gax_exceptions.OutOfRange:
                logger.info("Google Speech stream reached its duration limit, reopening")
                continue
            except gax_exceptions.GoogleAPICallError as e:
                logger.error(f"Google Speech stream error: {e}")
                self._fail(e)
                return
            except Exception as e:
                logger.error(f"Google Speech stream stopped unexpectedly: {e!r}")
                self._fail(e)
                return

            if self._open:
                logger.error("Google Speech stream ended while the channel was open")
                self._fail(TranscriptionChannelError("Google Speech stream ended unexpectedly"))
            return

    async def _requests(self):
        yield speech.StreamingRecognizeRequest(streaming_config=self.streaming_config)
        while True:
            frame = await self._audio_queue.get()
            if frame is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=frame)

    def _handle_response(self, response: speech.StreamingRecognizeResponse) -> None:
        for result in response.results:
            if not result.alternatives:
                continue
            alternative = result.alternatives[0]
            fragment = TranscriptFragment(
                text=alternative.transcript,
                is_final=result.is_final,
                language=result.language_code,
                confidence=alternative.confidence,
            )
            logger.debug(f"Google result (final={result.is_final}): {alternative.transcript[:50]!r}")
            self.on_fragment(fragment)

    def _fail(self, error: Exception) -> None:
        self._failure = error
        if self.on_error:
            self.on_error(error)


def _language_code(language: str) -> str:
    if not language or language == "auto":
        return DEFAULT_LANGUAGE
    return language


def _alternative_languages(language: str) -> List[str]:
    if not language or language == "auto":
        return []
    return [language]
