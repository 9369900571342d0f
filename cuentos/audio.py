"""
Helpers for turning Gemini TTS output (raw signed 16-bit PCM) into WAV files
"""

import base64
import io
import re
from typing import Union

import numpy as np
import soundfile as sf

RATE_PATTERN = re.compile(r"rate=(\d+)")

# 16-bit signed PCM full scale
PCM16_SCALE = 32768.0


class AudioFormatError(ValueError):
    """Raised when an audio payload or its mime type cannot be interpreted"""


def parse_sample_rate(mime_type: str) -> int:
    """Extract the sample rate from a mime type such as ``audio/L16;codec=pcm;rate=24000``"""
    match = RATE_PATTERN.search(mime_type or "")
    if not match:
        raise AudioFormatError(f"No sample rate declared in mime type {mime_type!r}")
    return int(match.group(1))


def decode_inline_data(data: Union[str, bytes, bytearray]) -> bytes:
    # google-genai already decodes inline data to bytes; raw JSON keeps it base64
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def pcm16_to_float(pcm_data: bytes) -> np.ndarray:
    """Little-endian signed 16-bit samples to float32 in [-1, 1).

    A trailing odd byte cannot form a sample and is ignored.
    """
    samples = np.frombuffer(pcm_data, dtype="<i2", count=len(pcm_data) // 2)
    return samples.astype(np.float32) / PCM16_SCALE


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float samples as a 16-bit PCM WAV container"""
    # libsndfile does not clip on float -> int16 conversion
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)

    buffer = io.BytesIO()
    sf.write(buffer, clipped, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()
