"""Audio-related data models."""

from dataclasses import dataclass
from enum import Enum


class CaptureState(Enum):
    """Lifecycle state of the audio capture pipeline."""
    IDLE = "idle"
    CAPTURING = "capturing"


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    block_size: int
    total_blocks: int
    dropped_blocks: int
