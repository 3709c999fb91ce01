"""Integration tests for the audio-to-answer interview workflow."""

import asyncio
import pytest
import numpy as np
from pathlib import Path

from interviewmate.models.transcription import TranscriptFragment
from interviewmate.services.interview_service import InterviewService
from interviewmate.services.knowledge_chat_service import KnowledgeChatService
from interviewmate.storage.knowledge_base import ConversationLog, KnowledgeBase
from interviewmate.storage.state_store import StateStore
from interviewmate.transcription.publisher import TranscriptPublisher

from conftest import FakeChannel


class ScriptedChannel(FakeChannel):
    """Emits one scripted final fragment per received audio frame."""

    def __init__(self, on_fragment, script):
        super().__init__(on_fragment)
        self.script = list(script)

    async def send_audio(self, frame: bytes) -> None:
        await super().send_audio(frame)
        if self.script:
            self.on_fragment(TranscriptFragment(text=self.script.pop(0), is_final=True))


@pytest.mark.integration
class TestInterviewFlow:
    """Audio blocks in, assistant answers out, state persisted."""

    def test_spoken_question_is_auto_answered(self, config, state_store, knowledge_base,
                                              conversation_log, fake_chat, errors,
                                              fragment_topic, mock_pyaudio):
        knowledge_base.add("Resume: led the payments migration")
        publisher = TranscriptPublisher(fragment_topic)
        channels = []

        def channel_factory(settings):
            channel = ScriptedChannel(publisher.get_callback(),
                                      ["Tell me about a challenge.", "How did you handle it?"])
            channels.append(channel)
            return channel

        service = InterviewService(config, knowledge_base, conversation_log, fake_chat, errors,
                                   publisher=publisher, channel_factory=channel_factory)
        fake_chat.replies = ["Talk about the payments migration."]
        block = np.zeros(config.get('audio.block_size'), dtype=np.float32).tobytes()

        async def scenario():
            service.toggle_auto_submit()
            assert await service.start_recording() is True
            callback = mock_pyaudio['instance'].open.call_args.kwargs['stream_callback']

            callback(block, len(block) // 4, {}, 0)
            await asyncio.sleep(0.02)
            callback(block, len(block) // 4, {}, 0)
            # Quiet period is 0.2s in the test configuration
            await asyncio.sleep(0.6)

            await service.close()

        asyncio.run(scenario())

        assert len(fake_chat.calls) == 1
        sent = fake_chat.last_messages
        assert sent[0] == {"role": "user", "content": "Resume: led the payments migration"}
        assert sent[-1] == {"role": "user", "content": "Tell me about a challenge.\nHow did you handle it?"}
        assert service.display.text == "Talk about the payments migration."
        assert service.accumulator.unsent_text() == ""
        assert len(channels[0].frames) == 2
        assert channels[0].close_calls == 1
        assert errors.message is None

        reloaded = ConversationLog(StateStore(config.get_data_directory()))
        assert [turn.role for turn in reloaded.turns] == ["user", "assistant"]

    def test_knowledge_chat_shares_history_with_interview(self, config, state_store, knowledge_base,
                                                          conversation_log, fake_chat, errors,
                                                          fragment_topic, temp_data_dir):
        notes = Path(temp_data_dir) / "star_stories.txt"
        notes.write_text("STAR: outage postmortem", encoding="utf-8")
        chat = KnowledgeChatService(config, knowledge_base, conversation_log, fake_chat, errors)
        interview = InterviewService(config, knowledge_base, conversation_log, fake_chat, errors,
                                     publisher=TranscriptPublisher(fragment_topic))
        fake_chat.replies = ["Use the outage story.", "As prepared: the outage story."]

        async def scenario():
            assert await chat.add_knowledge_file(str(notes)) is True
            assert await chat.send("Which story fits a failure question?") is True
            interview.accumulator.on_fragment(
                TranscriptFragment(text="Tell me about a failure.", is_final=True))
            assert await interview.ask() is True
            await interview.close()

        asyncio.run(scenario())

        interview_messages = fake_chat.last_messages
        assert interview_messages[0] == {"role": "user", "content": "STAR: outage postmortem"}
        assert {"role": "assistant", "content": "Use the outage story."} in interview_messages
        assert len(ConversationLog(StateStore(config.get_data_directory()))) == 4
        assert KnowledgeBase(StateStore(config.get_data_directory())).items == ["STAR: outage postmortem"]
