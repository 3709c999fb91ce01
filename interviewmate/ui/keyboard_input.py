"""Single-key terminal input delivered to the asyncio event loop."""

import asyncio
import sys
import threading
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class KeyboardInputHandler:
    """Reads single keypresses on a daemon thread and hands them to the loop.

    The key callback always runs on the event loop thread, so it may touch
    service state and create tasks directly.
    """

    def __init__(self, callback: Callable[[str], None], loop: Optional[asyncio.AbstractEventLoop] = None):
        """Initialize keyboard handler.

        Args:
            callback: Called on the event loop with each lower-cased key
            loop: Loop to deliver keys to; defaults to the running loop at start()
        """
        self.callback = callback
        self.loop = loop
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return

        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True, name="keyboard-input")
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self.thread = None
        logger.info("Keyboard input handler stopped")

    def _input_loop(self) -> None:
        while self.running:
            key = self._get_key()
            if not key:
                continue
            logger.debug(f"Key detected: {key!r}")
            try:
                self.loop.call_soon_threadsafe(self.callback, key)
            except RuntimeError:
                # Loop closed underneath us
                break
        logger.info("Keyboard input loop ended")

    def _get_key(self) -> Optional[str]:
        try:
            if sys.platform == "win32":
                return self._get_key_windows()
            return self._get_key_unix()
        except Exception as e:
            logger.error(f"Error getting key: {e}")
            self.running = False
            return None

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        import time

        if msvcrt.kbhit():
            return msvcrt.getwch().lower()
        time.sleep(0.05)
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            key = sys.stdin.read(1)
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
        return key.lower()
