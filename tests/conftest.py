"""Pytest configuration and fixtures for InterviewMate tests."""

import asyncio
import pytest
import tempfile
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch

from interviewmate.config import InterviewMateConfig
from interviewmate.errors import ChatRequestError, TranscriptionChannelError
from interviewmate.services.error_reporter import ErrorReporter
from interviewmate.storage.knowledge_base import KnowledgeBase, ConversationLog
from interviewmate.storage.state_store import StateStore
from interviewmate.transcription.base import AbstractTranscriptionChannel


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond temp files")
    config.addinivalue_line("markers", "integration: tests that wire several components together")


class FakeChannel(AbstractTranscriptionChannel):
    """Transcription channel that records frames instead of contacting a provider."""

    def __init__(self, on_fragment=None, on_error=None,
                 open_error: Optional[Exception] = None,
                 send_error: Optional[Exception] = None,
                 close_error: Optional[Exception] = None):
        super().__init__(on_fragment or (lambda fragment: None), on_error)
        self.open_error = open_error
        self.send_error = send_error
        self.close_error = close_error
        self.frames: List[bytes] = []
        self.credentials: List[str] = []
        self.open_calls = 0
        self.close_calls = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, credential: str) -> None:
        self.open_calls += 1
        self.credentials.append(credential)
        if self.open_error is not None:
            raise self.open_error
        self._open = True

    async def send_audio(self, frame: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        if not self._open:
            raise TranscriptionChannelError("channel not open")
        self.frames.append(frame)

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False
        if self.close_error is not None:
            raise self.close_error


class FakeChatClient:
    """Chat client that returns scripted replies and records every request.

    A reply that is an exception instance is raised instead of returned.
    When ``gate`` is set, each call waits for it before answering.
    """

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.default_reply = "OK"

    async def chat_completion(self, settings, messages, temperature=None, max_tokens=None) -> str:
        self.calls.append({"settings": settings, "messages": messages})
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else self.default_reply
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def last_messages(self) -> List[Dict[str, Any]]:
        return self.calls[-1]["messages"]


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fragment_topic():
    """A fresh pub/sub topic so accumulators from different tests never share messages."""
    return f"test_fragment_{uuid.uuid4().hex}"


@pytest.fixture
def config(temp_data_dir):
    """Configuration with complete provider settings and short timings."""
    cfg = InterviewMateConfig(str(Path(temp_data_dir) / "interviewmate.yaml"))
    cfg.set('chat.api_key', "sk-test-key")
    cfg.set('transcription.credentials_path', str(Path(temp_data_dir) / "credentials.json"))
    cfg.set('storage.data_directory', str(Path(temp_data_dir) / "data"))
    cfg.set('auto_submit.quiet_interval_seconds', 0.2)
    cfg.set('auto_submit.poll_interval_seconds', 0.1)
    cfg.set('render.reveal_tick_seconds', 0.001)
    cfg.set('render.reveal_pause_seconds', 0.01)
    return cfg


@pytest.fixture
def state_store(config):
    return StateStore(config.get_data_directory())


@pytest.fixture
def knowledge_base(state_store):
    return KnowledgeBase(state_store)


@pytest.fixture
def conversation_log(state_store):
    return ConversationLog(state_store)


@pytest.fixture
def errors():
    return ErrorReporter()


@pytest.fixture
def fake_chat():
    return FakeChatClient()


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.is_active.return_value = True
        mock_stream.start_stream.return_value = None
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def chat_error():
    return ChatRequestError("Chat API error: 500 - upstream failure")


@pytest.fixture
def disk_full():
    """Make every state file write fail at the final rename."""
    with patch.object(Path, 'replace', side_effect=OSError(28, "No space left on device")):
        yield
