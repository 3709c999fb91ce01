"""Sample format conversion for the transcription wire format."""

import numpy as np

INT16_MAX = 0x7FFF


def float_to_pcm16(samples) -> bytes:
    """Convert float samples to little-endian signed 16-bit PCM.

    Samples are clamped to [-1, 1], scaled by the int16 maximum and
    truncated toward zero.
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * INT16_MAX).astype('<i2').tobytes()
