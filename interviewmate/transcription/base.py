"""Abstract base class for streaming transcription channels."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..models.transcription import TranscriptFragment

logger = logging.getLogger(__name__)


class AbstractTranscriptionChannel(ABC):
    """A live connection to a speech-to-text provider.

    Audio goes in as binary 16-bit PCM frames; fragments come out through
    ``on_fragment`` in provider delivery order until the channel is closed.
    """

    def __init__(self,
                 on_fragment: Callable[[TranscriptFragment], None],
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.on_fragment = on_fragment
        self.on_error = on_error

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True between a successful ``open`` and ``close``."""

    @abstractmethod
    async def open(self, credential: str) -> None:
        """Open the channel with the provider credential.

        Raises:
            TranscriptionChannelError: if the channel cannot be opened
        """

    @abstractmethod
    async def send_audio(self, frame: bytes) -> None:
        """Hand one binary audio frame to the provider.

        Raises:
            TranscriptionChannelError: if the channel is not open or has failed
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
