"""Display state for assistant replies and the two rendering policies."""

import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class DisplayState:
    """The currently rendered assistant text, with change notification."""

    def __init__(self):
        self._text = ""
        self._listeners: List[Callable[[str], None]] = []

    @property
    def text(self) -> str:
        return self._text

    def set(self, text: str) -> None:
        self._text = text
        for listener in list(self._listeners):
            listener(text)

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)


class AppendRenderer:
    """Interview mode: every completed reply is appended, history stays visible."""

    def __init__(self, display: DisplayState):
        self.display = display

    def append(self, reply: str) -> None:
        current = self.display.text
        self.display.set(current + ("\n\n" if current else "") + reply)

    def clear(self) -> None:
        self.display.set("")


class RevealRenderer:
    """Knowledge-base chat mode: a reply is revealed one character per tick.

    Presentation only; the complete reply is stored elsewhere before the
    reveal starts, so cancelling a reveal loses nothing.
    """

    def __init__(self, display: DisplayState, tick: float = 0.035, pause: float = 0.5):
        """Initialize reveal renderer.

        Args:
            display: Display state to write into
            tick: Seconds between revealed characters
            pause: Seconds to wait after the last character before the trailing newlines
        """
        self.display = display
        self.tick = tick
        self.pause = pause
        self._task: Optional[asyncio.Task] = None

    @property
    def is_revealing(self) -> bool:
        return self._task is not None and not self._task.done()

    def reveal(self, reply: str) -> asyncio.Task:
        """Start revealing ``reply``, discarding any reveal in progress."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._reveal(reply), name="reveal")
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Reveal in progress cancelled")
        self._task = None

    def clear(self) -> None:
        self.cancel()
        self.display.set("")

    async def _reveal(self, reply: str) -> None:
        self.display.set("")
        for i in range(len(reply) + 1):
            self.display.set(reply[:i])
            await asyncio.sleep(self.tick)
        await asyncio.sleep(self.pause)
        self.display.set(self.display.text + "\n\n")
