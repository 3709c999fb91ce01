"""Collects user-visible error messages for the UI."""

import logging
from typing import Callable, List, Optional

from ..errors import InterviewMateError, ConfigurationError

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Holds the current error message and the persistent configuration banner.

    Only ``user_message`` text reaches the UI; the detail goes to the log.
    """

    def __init__(self):
        self.message: Optional[str] = None
        self.banner: Optional[str] = None
        self._listeners: List[Callable[["ErrorReporter"], None]] = []

    def add_listener(self, listener: Callable[["ErrorReporter"], None]) -> None:
        self._listeners.append(listener)

    def report(self, error: Exception) -> None:
        if isinstance(error, InterviewMateError):
            logger.error(f"{type(error).__name__}: {error.detail or error.user_message}")
            if isinstance(error, ConfigurationError):
                self.banner = error.user_message
            else:
                self.message = error.user_message
        else:
            logger.error(f"Unexpected error: {error}", exc_info=error)
            self.message = InterviewMateError.user_message
        self._notify()

    def clear(self) -> None:
        self.message = None
        self._notify()

    def clear_banner(self) -> None:
        self.banner = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
