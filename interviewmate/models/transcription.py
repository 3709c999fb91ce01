"""Transcription-related data models."""

from dataclasses import dataclass, field
import time


@dataclass(frozen=True)
class TranscriptFragment:
    """One unit of transcribed speech as delivered by the provider."""
    text: str
    is_final: bool
    timestamp: float = field(default_factory=time.time)
    language: str = ""
    confidence: float = 0.0
