"""Audio capture and sample conversion."""

from .capture import AudioCapture, AudioSession
from .conversion import float_to_pcm16

__all__ = [
    'AudioCapture',
    'AudioSession',
    'float_to_pcm16',
]
