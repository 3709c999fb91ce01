"""Data models for the InterviewMate application."""

from .transcription import TranscriptFragment
from .audio import AudioStats, CaptureState
from .conversation import Turn, ChatRole
from .upload import UploadedFile

__all__ = [
    "TranscriptFragment",
    "AudioStats",
    "CaptureState",
    "Turn",
    "ChatRole",
    "UploadedFile",
]
