"""Quiet-period scheduler that auto-submits unsent transcript text."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..transcription.accumulator import TranscriptAccumulator

logger = logging.getLogger(__name__)

# Slack for timer handles that fire a clock tick early
TIMER_TOLERANCE_SECONDS = 0.05


class AutoSubmitScheduler:
    """Fires a submission once the transcript has been quiet for ``quiet_interval``.

    A timer re-armed on every commit is the primary trigger; a poll task is
    kept as a backstop. Both go through ``_maybe_fire`` so at most one
    submission is in flight, and a fresh quiet period is required after
    each completed request.
    """

    def __init__(self,
                 accumulator: TranscriptAccumulator,
                 submit: Callable[[], Awaitable[None]],
                 is_busy: Callable[[], bool],
                 quiet_interval: float = 2.0,
                 poll_interval: float = 1.0):
        """Initialize the scheduler and listen for transcript commits.

        Args:
            accumulator: Transcript source; its clock is used for timing
            submit: Coroutine function that submits the unsent span
            is_busy: Returns True while any chat request is in flight
            quiet_interval: Seconds of inactivity before firing
            poll_interval: Seconds between backstop checks
        """
        self.accumulator = accumulator
        self.submit = submit
        self.is_busy = is_busy
        self.quiet_interval = quiet_interval
        self.poll_interval = poll_interval
        self.clock = accumulator.clock

        self._enabled = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._last_completion: Optional[float] = None
        self.fire_count = 0

        accumulator.add_listener(self.on_activity)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        if self._enabled:
            return
        self._enabled = True
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop(), name="auto-submit-poll")
        logger.info("Auto-submit enabled")

    def disable(self) -> None:
        if not self._enabled:
            return
        self._enabled = False
        self._cancel_timer()
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        logger.info("Auto-submit disabled")

    def toggle(self) -> bool:
        if self._enabled:
            self.disable()
        else:
            self.enable()
        return self._enabled

    def on_activity(self) -> None:
        """Re-arm the quiet-period timer after a transcript commit."""
        if not self._enabled:
            return
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.quiet_interval, self._on_timer)

    def notify_completed(self) -> None:
        """Record the end of a chat request; the next fire needs a new quiet period."""
        self._last_completion = self.clock()

    def close(self) -> None:
        self.disable()
        self.accumulator.remove_listener(self.on_activity)

    def _on_timer(self) -> None:
        self._timer = None
        self._maybe_fire("timer")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self._maybe_fire("poll")

    def _maybe_fire(self, reason: str) -> bool:
        if not self._enabled:
            return False
        if self._inflight is not None and not self._inflight.done():
            return False
        if self.is_busy():
            return False
        if not self.accumulator.unsent_text().strip():
            return False

        quiet_since = self.accumulator.last_activity
        if self._last_completion is not None:
            quiet_since = max(quiet_since, self._last_completion)
        if self.clock() - quiet_since + TIMER_TOLERANCE_SECONDS < self.quiet_interval:
            return False

        self._cancel_timer()
        self.fire_count += 1
        logger.info(f"Auto-submitting unsent transcript ({reason})")
        self._inflight = asyncio.get_running_loop().create_task(self.submit(), name="auto-submit")
        self._inflight.add_done_callback(_log_task_failure)
        return True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Auto-submit task failed: {error}", exc_info=error)
