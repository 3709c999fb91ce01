"""Audio capture pipeline that streams converted blocks to a transcription channel."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

import numpy as np
import pyaudio

from .conversion import float_to_pcm16
from ..errors import CaptureError, TranscriptionChannelError
from ..models.audio import AudioStats, CaptureState
from ..transcription.base import AbstractTranscriptionChannel

logger = logging.getLogger(__name__)


@dataclass
class AudioSession:
    """Live resources of one capture session, owned by AudioCapture."""
    channel: AbstractTranscriptionChannel
    blocks: asyncio.Queue
    loop: asyncio.AbstractEventLoop
    pyaudio_instance: Optional[pyaudio.PyAudio] = None
    stream: Optional[pyaudio.Stream] = None
    processor: Optional[asyncio.Task] = None


class AudioCapture:
    """Captures float32 audio blocks and forwards them as 16-bit PCM frames.

    PortAudio delivers blocks on its own thread; they are handed to the
    event loop and converted and sent by a processor task, so all session
    state is touched from the loop only.
    """

    def __init__(
        self,
        channel: AbstractTranscriptionChannel,
        sample_rate: int = 16000,
        block_size: int = 4096,
        channels: int = 1,
        input_device_index: Optional[int] = None,
        max_pending_blocks: int = 64,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            channel: Transcription channel opened on start and closed on stop
            sample_rate: Capture sample rate (16kHz for speech recognition)
            block_size: Samples per delivered block
            channels: Number of input channels; only the first is transcribed
            input_device_index: PyAudio input device, e.g. a loopback/monitor
                                device for system audio. None uses the default input.
            max_pending_blocks: Blocks queued before new ones are dropped
            on_error: Called when capture is aborted by a channel failure
        """
        self.channel = channel
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.channels = channels
        self.input_device_index = input_device_index
        self.max_pending_blocks = max_pending_blocks
        self.on_error = on_error

        self.state = CaptureState.IDLE
        self.session: Optional[AudioSession] = None
        self._stop_tasks: Set[asyncio.Task] = set()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_blocks = 0
        self.dropped_blocks = 0

    @property
    def is_recording(self) -> bool:
        return self.state is CaptureState.CAPTURING

    async def start(self, credential: str) -> None:
        """Acquire the audio stream, open the channel and begin block delivery.

        Raises:
            CaptureError: if the audio stream cannot be acquired
            TranscriptionChannelError: if the channel cannot be opened
        """
        if self.state is CaptureState.CAPTURING:
            logger.warning("Capture already in progress")
            return

        logger.info("Starting audio capture")
        loop = asyncio.get_running_loop()
        session = AudioSession(
            channel=self.channel,
            blocks=asyncio.Queue(maxsize=self.max_pending_blocks),
            loop=loop,
        )
        self.session = session

        try:
            session.pyaudio_instance = pyaudio.PyAudio()
            session.stream = session.pyaudio_instance.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.block_size,
                stream_callback=self._make_stream_callback(session),
                start=False,
            )
        except Exception as e:
            logger.error(f"Failed to acquire audio stream: {e}")
            await self._release(session)
            raise CaptureError(f"Failed to acquire audio stream: {e}") from e

        try:
            await self.channel.open(credential)
        except Exception as e:
            logger.error(f"Failed to open transcription channel: {e}")
            await self._release(session)
            if isinstance(e, TranscriptionChannelError):
                raise
            raise TranscriptionChannelError(f"Failed to open transcription channel: {e}") from e

        session.processor = asyncio.create_task(self._process_blocks(session), name="audio-processor")
        try:
            session.stream.start_stream()
        except Exception as e:
            logger.error(f"Failed to start audio stream: {e}")
            await self._release(session)
            raise CaptureError(f"Failed to start audio stream: {e}") from e

        self.start_time = datetime.now()
        self.total_blocks = 0
        self.dropped_blocks = 0
        self.state = CaptureState.CAPTURING
        logger.info(f"Audio capture started: {self.sample_rate}Hz, {self.block_size} samples/block")

    async def stop(self) -> None:
        """Release the stream, the audio graph, the processor and the channel.

        Idempotent; every release runs even if an earlier one fails.
        """
        session = self.session
        if session is None:
            logger.debug("No capture in progress")
            return

        logger.info("Stopping audio capture")
        await self._release(session)
        logger.info(f"Capture stopped. Total blocks: {self.total_blocks}, dropped: {self.dropped_blocks}")

    def abort(self, error: Exception) -> None:
        """Stop capture after a channel failure and report it."""
        if self.session is None:
            return
        logger.error(f"Aborting capture: {error}")
        task = asyncio.get_running_loop().create_task(self.stop())
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_tasks.discard)
        if self.on_error:
            self.on_error(error)

    async def _release(self, session: AudioSession) -> None:
        if self.session is session:
            self.session = None
        self.state = CaptureState.IDLE

        failures: List[Tuple[str, Exception]] = []

        if session.stream is not None:
            try:
                if session.stream.is_active():
                    session.stream.stop_stream()
                session.stream.close()
            except Exception as e:
                failures.append(("audio stream", e))
            session.stream = None

        if session.pyaudio_instance is not None:
            try:
                session.pyaudio_instance.terminate()
            except Exception as e:
                failures.append(("audio graph", e))
            session.pyaudio_instance = None

        processor = session.processor
        session.processor = None
        if processor is not None and processor is not asyncio.current_task():
            processor.cancel()
            try:
                await processor
            except asyncio.CancelledError:
                pass
            except Exception as e:
                failures.append(("block processor", e))

        try:
            await session.channel.close()
        except Exception as e:
            failures.append(("transcription channel", e))

        for name, error in failures:
            logger.error(f"Error releasing {name}: {error}")

    def _make_stream_callback(self, session: AudioSession):
        def callback(in_data, frame_count, time_info, status):
            # Runs on the PortAudio thread
            if status:
                logger.debug(f"Audio stream status flags: {status}")
            try:
                session.loop.call_soon_threadsafe(self._enqueue_block, session, in_data)
            except RuntimeError:
                # Event loop is gone; nothing left to deliver to
                return (None, pyaudio.paComplete)
            return (None, pyaudio.paContinue)

        return callback

    def _enqueue_block(self, session: AudioSession, data: bytes) -> None:
        if self.session is not session:
            return
        try:
            session.blocks.put_nowait(data)
        except asyncio.QueueFull:
            self.dropped_blocks += 1
            if self.dropped_blocks % 10 == 1:
                logger.warning(f"Audio block queue full, dropped {self.dropped_blocks} blocks so far")

    async def _process_blocks(self, session: AudioSession) -> None:
        while True:
            data = await session.blocks.get()
            samples = np.frombuffer(data, dtype=np.float32)
            if self.channels > 1:
                samples = samples.reshape(-1, self.channels)[:, 0]
            frame = float_to_pcm16(samples)

            try:
                await session.channel.send_audio(frame)
            except TranscriptionChannelError as e:
                self.abort(e)
                return
            self.total_blocks += 1

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time and self.is_recording:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            block_size=self.block_size,
            total_blocks=self.total_blocks,
            dropped_blocks=self.dropped_blocks,
        )

    def __del__(self):
        """Release what can be released synchronously if still capturing."""
        session = self.session
        if session is None:
            return
        self.session = None
        self.state = CaptureState.IDLE
        logger.warning("AudioCapture destroyed while capturing; releasing resources")
        if session.stream is not None:
            try:
                session.stream.stop_stream()
                session.stream.close()
            except Exception as e:
                logger.error(f"Error releasing audio stream: {e}")
        if session.pyaudio_instance is not None:
            try:
                session.pyaudio_instance.terminate()
            except Exception as e:
                logger.error(f"Error releasing audio graph: {e}")
        if session.processor is not None:
            session.processor.cancel()
        if not session.loop.is_closed():
            session.loop.call_soon_threadsafe(session.loop.create_task, session.channel.close())
