"""Transcription module for InterviewMate."""

from .base import AbstractTranscriptionChannel
from .publisher import TranscriptPublisher, FRAGMENT_TOPIC
from .accumulator import TranscriptAccumulator
from .google_backend import GoogleStreamingChannel

__all__ = [
    "AbstractTranscriptionChannel",
    "TranscriptPublisher",
    "FRAGMENT_TOPIC",
    "TranscriptAccumulator",
    "GoogleStreamingChannel",
]
