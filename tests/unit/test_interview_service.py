"""Unit tests for InterviewService."""

import asyncio
import pytest

from interviewmate.errors import ChatRequestError, ConfigurationError, StorageError, TranscriptionChannelError
from interviewmate.models.conversation import Turn
from interviewmate.models.transcription import TranscriptFragment
from interviewmate.services.interview_service import InterviewService
from interviewmate.transcription.publisher import TranscriptPublisher

from conftest import FakeChannel


def final(text: str) -> TranscriptFragment:
    return TranscriptFragment(text=text, is_final=True)


@pytest.fixture
def publisher(fragment_topic):
    return TranscriptPublisher(fragment_topic)


@pytest.fixture
def make_service(config, knowledge_base, conversation_log, fake_chat, errors, publisher):
    created = []

    def factory(channel=None):
        channel = channel or FakeChannel()
        service = InterviewService(
            config, knowledge_base, conversation_log, fake_chat, errors,
            publisher=publisher,
            channel_factory=lambda settings: channel,
        )
        created.append(service)
        return service

    yield factory
    for service in created:
        service.scheduler.close()
        service.accumulator.close()


@pytest.mark.unit
class TestInterviewServiceAsk:
    """Test cases for submitting the transcript."""

    def test_ask_sends_unsent_transcript_with_context(self, make_service, publisher, knowledge_base, fake_chat):
        knowledge_base.add("Resume: backend engineer")
        service = make_service()
        publisher.publish_fragment(final("Why should we hire you?"))
        fake_chat.replies = ["  Because I ship reliable systems.  "]

        assert asyncio.run(service.ask()) is True

        assert fake_chat.last_messages == [
            {"role": "user", "content": "Resume: backend engineer"},
            {"role": "user", "content": "Why should we hire you?"},
        ]
        assert service.conversation_log.turns == [
            Turn(role="user", content="Why should we hire you?"),
            Turn(role="assistant", content="Because I ship reliable systems."),
        ]
        assert service.display.text == "Because I ship reliable systems."
        assert service.accumulator.unsent_text() == ""

    def test_second_ask_sends_only_new_text_and_history(self, make_service, publisher, fake_chat):
        service = make_service()
        fake_chat.replies = ["First answer", "Second answer"]

        async def scenario():
            publisher.publish_fragment(final("First question"))
            await service.ask()
            publisher.publish_fragment(final("Second question"))
            await service.ask()

        asyncio.run(scenario())

        assert fake_chat.last_messages == [
            {"role": "user", "content": "First question"},
            {"role": "assistant", "content": "First answer"},
            {"role": "user", "content": "Second question"},
        ]
        assert service.display.text == "First answer\n\nSecond answer"

    def test_failed_request_leaves_no_trace(self, make_service, publisher, fake_chat, errors, chat_error):
        service = make_service()
        publisher.publish_fragment(final("A question"))
        fake_chat.replies = [chat_error]

        assert asyncio.run(service.ask()) is False

        assert len(service.conversation_log) == 0
        assert service.display.text == ""
        assert service.accumulator.processed_index == 0
        assert service.accumulator.unsent_text() == "A question"
        assert service.is_loading is False
        assert errors.message == ChatRequestError.user_message

    def test_retry_after_failure_resends_same_span(self, make_service, publisher, fake_chat, chat_error):
        service = make_service()
        publisher.publish_fragment(final("A question"))
        fake_chat.replies = [chat_error, "Answer"]

        async def scenario():
            await service.ask()
            await service.ask()

        asyncio.run(scenario())

        assert [call["messages"][-1]["content"] for call in fake_chat.calls] == ["A question", "A question"]
        assert len(service.conversation_log) == 2

    def test_fragments_during_request_stay_unsent(self, make_service, publisher, fake_chat):
        service = make_service()
        publisher.publish_fragment(final("First part"))

        async def scenario():
            fake_chat.gate = asyncio.Event()
            request = asyncio.create_task(service.ask())
            await asyncio.sleep(0.01)
            publisher.publish_fragment(final("Late part"))
            fake_chat.gate.set()
            await request

        asyncio.run(scenario())

        assert fake_chat.calls[0]["messages"][-1]["content"] == "First part"
        assert service.accumulator.unsent_text() == "\nLate part"

    def test_only_one_request_in_flight(self, make_service, publisher, fake_chat):
        service = make_service()
        publisher.publish_fragment(final("Question"))

        async def scenario():
            fake_chat.gate = asyncio.Event()
            first = asyncio.create_task(service.ask())
            await asyncio.sleep(0.01)
            second = await service.ask()
            fake_chat.gate.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert len(fake_chat.calls) == 1

    def test_blank_transcript_sends_nothing(self, make_service, fake_chat):
        service = make_service()

        assert asyncio.run(service.ask()) is False
        assert fake_chat.calls == []

    def test_explicit_content_keeps_cursor(self, make_service, publisher, fake_chat):
        service = make_service()
        publisher.publish_fragment(final("Transcript question"))

        assert asyncio.run(service.ask("Typed question")) is True

        assert fake_chat.last_messages[-1]["content"] == "Typed question"
        assert service.accumulator.processed_index == 0

    def test_missing_api_key_shows_banner(self, make_service, publisher, config, errors, fake_chat):
        config.set('chat.api_key', "")
        fake_chat.replies = [ConfigurationError("Chat API key not configured")]
        service = make_service()
        publisher.publish_fragment(final("Question"))

        asyncio.run(service.ask())

        assert errors.banner == ConfigurationError.user_message
        assert len(service.conversation_log) == 0

    def test_clear_transcript_resets_cursor(self, make_service, publisher):
        service = make_service()
        publisher.publish_fragment(final("Question"))
        service.accumulator.mark_processed(4)

        service.clear_transcript()

        assert service.accumulator.text == ""
        assert service.accumulator.processed_index == 0

    def test_storage_failure_leaves_span_unsent(self, make_service, publisher, fake_chat, errors, disk_full):
        service = make_service()
        publisher.publish_fragment(final("A question"))
        fake_chat.replies = ["Answer"]

        assert asyncio.run(service.ask()) is False

        assert len(service.conversation_log) == 0
        assert service.display.text == ""
        assert service.accumulator.unsent_text() == "A question"
        assert service.is_loading is False
        assert errors.message == StorageError.user_message

    def test_set_transcript_clamps_cursor(self, make_service, publisher, fake_chat):
        service = make_service()
        publisher.publish_fragment(final("Tell me about your last project"))
        fake_chat.replies = ["Answer", "Second answer"]

        async def scenario():
            await service.ask()
            service.set_transcript("Tell me")
            clamped = service.accumulator.processed_index
            service.set_transcript("Tell me about a conflict")
            await service.ask()
            return clamped

        clamped = asyncio.run(scenario())

        assert clamped == len("Tell me")
        assert fake_chat.last_messages[-1]["content"] == "about a conflict"
        assert service.accumulator.unsent_text() == ""


@pytest.mark.unit
class TestInterviewServiceRecording:
    """Test cases for starting and stopping capture."""

    def test_start_requires_configuration(self, make_service, config, errors, mock_pyaudio):
        config.set('transcription.credentials_path', "")
        service = make_service()

        started = asyncio.run(service.start_recording())

        assert started is False
        assert errors.banner == ConfigurationError.user_message
        mock_pyaudio['class'].assert_not_called()

    def test_start_and_stop(self, make_service, config, mock_pyaudio):
        channel = FakeChannel()
        service = make_service(channel)

        async def scenario():
            assert await service.start_recording() is True
            recording = service.is_recording
            await service.stop_recording()
            return recording

        assert asyncio.run(scenario()) is True
        assert service.is_recording is False
        assert channel.credentials == [config.get('transcription.credentials_path')]
        assert channel.close_calls == 1

    def test_channel_open_failure_is_reported(self, make_service, errors, mock_pyaudio):
        service = make_service(FakeChannel(open_error=TranscriptionChannelError("bad key")))

        started = asyncio.run(service.start_recording())

        assert started is False
        assert service.capture is None
        assert errors.message == TranscriptionChannelError.user_message

    def test_close_stops_recording(self, make_service, mock_pyaudio):
        channel = FakeChannel()
        service = make_service(channel)

        async def scenario():
            await service.start_recording()
            service.toggle_auto_submit()
            await service.close()

        asyncio.run(scenario())

        assert service.is_recording is False
        assert service.scheduler.enabled is False
        assert channel.close_calls == 1
