"""Transcript accumulator that merges final fragments into one growing buffer."""

import logging
import time
from typing import Callable, List
from pubsub import pub

from ..models.transcription import TranscriptFragment
from .publisher import FRAGMENT_TOPIC

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """Holds the transcript buffer and the processed cursor.

    The buffer is the newline-joined sequence of committed fragments. The
    processed cursor marks the end of the span already submitted to the
    chat endpoint; ``0 <= processed_index <= len(text)`` always holds.
    """

    def __init__(self, topic: str = FRAGMENT_TOPIC, clock: Callable[[], float] = time.monotonic):
        """Initialize transcript accumulator and subscribe to the fragment topic.

        Args:
            topic: Topic carrying TranscriptFragment messages
            clock: Monotonic clock used for the last activity timestamp
        """
        self.topic = topic
        self.clock = clock

        self._text = ""
        self._processed_index = 0
        self.last_activity = clock()
        self._listeners: List[Callable[[], None]] = []

        pub.subscribe(self.on_fragment, topic)
        self._subscribed = True
        logger.info(f"TranscriptAccumulator initialized - subscribed to {topic}")

    @property
    def text(self) -> str:
        return self._text

    @property
    def processed_index(self) -> int:
        return self._processed_index

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every commit."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_fragment(self, fragment: TranscriptFragment) -> bool:
        """Commit a final fragment unless the buffer already ends with it.

        Returns:
            True if the buffer changed
        """
        if not fragment.is_final or not fragment.text:
            return False

        text = fragment.text.strip()
        if not text:
            return False

        # Providers sometimes re-emit the last final segment
        if self._text.endswith(text):
            logger.debug(f"Discarding replayed fragment: {text[:40]!r}")
            return False

        self._text = self._text + ("\n" if self._text else "") + text
        self.last_activity = self.clock()
        logger.debug(f"Committed fragment ({len(text)} chars), buffer now {len(self._text)} chars")

        for listener in list(self._listeners):
            listener()
        return True

    def unsent_text(self) -> str:
        """Text after the processed cursor."""
        return self._text[self._processed_index:]

    def mark_processed(self, upto: int) -> None:
        """Advance the processed cursor to ``upto``; it never moves backwards."""
        upto = min(upto, len(self._text))
        if upto > self._processed_index:
            self._processed_index = upto
            logger.debug(f"Processed cursor advanced to {upto}")

    def set_text(self, text: str) -> None:
        """Replace the buffer after a manual edit."""
        self._text = text
        self._processed_index = min(self._processed_index, len(text))
        self.last_activity = self.clock()

    def clear(self) -> None:
        """Empty the buffer and reset the processed cursor."""
        self._text = ""
        self._processed_index = 0
        logger.info("Transcript cleared")

    def close(self) -> None:
        """Unsubscribe from the fragment topic."""
        if not self._subscribed:
            return
        try:
            pub.unsubscribe(self.on_fragment, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
        self._subscribed = False
        self._listeners.clear()
