"""Unit tests for AutoSubmitScheduler.

Intervals are scaled down from the production 2.0s/1.0s so the tests run
in about a second each.
"""

import asyncio
import pytest

from interviewmate.chat.auto_submit import AutoSubmitScheduler, TIMER_TOLERANCE_SECONDS
from interviewmate.models.transcription import TranscriptFragment
from interviewmate.transcription.accumulator import TranscriptAccumulator

QUIET = 0.4
POLL = 0.2


def final(text: str) -> TranscriptFragment:
    return TranscriptFragment(text=text, is_final=True)


class Recorder:
    """Submit callback that records fire times and optionally consumes the transcript."""

    def __init__(self, accumulator: TranscriptAccumulator, consume: bool = True):
        self.accumulator = accumulator
        self.consume = consume
        self.fired_at = []
        self.texts = []
        self.gate = None
        self.scheduler = None

    async def __call__(self) -> None:
        loop = asyncio.get_running_loop()
        self.fired_at.append(loop.time())
        self.texts.append(self.accumulator.unsent_text())
        if self.gate is not None:
            await self.gate.wait()
        if self.consume:
            self.accumulator.mark_processed(len(self.accumulator.text))
        self.scheduler.notify_completed()


def make_scheduler(accumulator, recorder, is_busy=lambda: False):
    scheduler = AutoSubmitScheduler(accumulator, recorder, is_busy,
                                    quiet_interval=QUIET, poll_interval=POLL)
    recorder.scheduler = scheduler
    return scheduler


@pytest.mark.unit
class TestAutoSubmitScheduler:
    """Test cases for quiet-period firing."""

    def test_fires_once_after_quiet_period(self, fragment_topic):
        async def scenario():
            loop = asyncio.get_running_loop()
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            scheduler = make_scheduler(accumulator, recorder)
            scheduler.enable()

            start = loop.time()
            accumulator.on_fragment(final("Hello"))
            await asyncio.sleep(0.1)
            accumulator.on_fragment(final("world"))
            await asyncio.sleep(1.2)

            scheduler.close()
            accumulator.close()
            return start, recorder

        start, recorder = asyncio.run(scenario())

        assert len(recorder.fired_at) == 1
        elapsed = recorder.fired_at[0] - start
        assert elapsed >= 0.1 + QUIET - TIMER_TOLERANCE_SECONDS - 0.01
        assert elapsed < 0.1 + QUIET + POLL + 0.3
        assert recorder.texts == ["Hello\nworld"]

    def test_no_double_fire_while_submission_in_flight(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            recorder.gate = asyncio.Event()
            scheduler = make_scheduler(accumulator, recorder)
            scheduler.enable()

            accumulator.on_fragment(final("What is your greatest strength?"))
            # Timer and several polls all come due while the request is blocked
            await asyncio.sleep(QUIET + 4 * POLL)
            fired_while_blocked = scheduler.fire_count

            recorder.gate.set()
            await asyncio.sleep(0.05)
            scheduler.close()
            accumulator.close()
            return fired_while_blocked, scheduler.fire_count

        fired_while_blocked, total = asyncio.run(scenario())

        assert fired_while_blocked == 1
        assert total == 1

    def test_busy_service_blocks_firing(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            scheduler = make_scheduler(accumulator, recorder, is_busy=lambda: True)
            scheduler.enable()

            accumulator.on_fragment(final("question"))
            await asyncio.sleep(QUIET + 2 * POLL)

            scheduler.close()
            accumulator.close()
            return recorder

        recorder = asyncio.run(scenario())

        assert recorder.fired_at == []

    def test_toggle_off_cancels_pending_fire(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            scheduler = make_scheduler(accumulator, recorder)
            assert scheduler.toggle() is True

            accumulator.on_fragment(final("question"))
            await asyncio.sleep(QUIET / 2)
            assert scheduler.toggle() is False
            await asyncio.sleep(QUIET + 2 * POLL)

            scheduler.close()
            accumulator.close()
            return recorder

        recorder = asyncio.run(scenario())

        assert recorder.fired_at == []

    def test_disabled_scheduler_never_fires(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            scheduler = make_scheduler(accumulator, recorder)

            accumulator.on_fragment(final("question"))
            await asyncio.sleep(QUIET + 2 * POLL)

            scheduler.close()
            accumulator.close()
            return recorder

        recorder = asyncio.run(scenario())

        assert recorder.fired_at == []

    def test_empty_unsent_span_does_not_fire(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            recorder = Recorder(accumulator)
            scheduler = make_scheduler(accumulator, recorder)
            accumulator.on_fragment(final("already answered"))
            accumulator.mark_processed(len(accumulator.text))
            scheduler.enable()

            await asyncio.sleep(QUIET + 2 * POLL)

            scheduler.close()
            accumulator.close()
            return recorder

        recorder = asyncio.run(scenario())

        assert recorder.fired_at == []

    def test_failed_submission_waits_for_new_quiet_period(self, fragment_topic):
        async def scenario():
            accumulator = TranscriptAccumulator(fragment_topic)
            # Leaves the cursor in place, as a failed request does
            recorder = Recorder(accumulator, consume=False)
            scheduler = make_scheduler(accumulator, recorder)
            scheduler.enable()

            accumulator.on_fragment(final("question"))
            await asyncio.sleep(1.3)

            scheduler.close()
            accumulator.close()
            return recorder

        recorder = asyncio.run(scenario())

        assert 1 <= len(recorder.fired_at) <= 3
        gaps = [b - a for a, b in zip(recorder.fired_at, recorder.fired_at[1:])]
        assert all(gap >= QUIET - TIMER_TOLERANCE_SECONDS - 0.01 for gap in gaps)
