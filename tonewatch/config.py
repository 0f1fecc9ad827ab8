"""
Configuration constants and environment parsing for tonewatch.

All TONEWATCH_* environment variables are parsed here and exported as module-level
constants. Other modules import from here rather than reading os.environ directly.
"""
from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    """Parse an integer from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return max(1, int(float(val)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Parse a float from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------
FFMPEG_BIN: str = os.getenv("TONEWATCH_FFMPEG", "ffmpeg")
"""ffmpeg executable used for decoding and tone removal."""

FFPROBE_BIN: str = os.getenv("TONEWATCH_FFPROBE", "ffprobe")
"""ffprobe executable used to measure source duration before stripping."""

DECODE_TIMEOUT_S: float = _float_env("TONEWATCH_DECODE_TIMEOUT_S", 10.0)
"""Upper bound for a single ffmpeg decode."""

STRIP_TIMEOUT_S: float = _float_env("TONEWATCH_STRIP_TIMEOUT_S", 30.0)
"""Upper bound for a single ffmpeg trim/concat/encode run."""


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------
SAMPLE_RATE: int = _int_env("TONEWATCH_SAMPLE_RATE", 16_000)
"""Decode sample rate; 16 kHz keeps the 0-5000 Hz tone band well below Nyquist."""

MIN_AUDIO_BYTES: int = _int_env("TONEWATCH_MIN_AUDIO_BYTES", 1000)
"""Encoded inputs smaller than this are treated as "no tones" without decoding."""

MIN_STRIPPED_BYTES: int = _int_env("TONEWATCH_MIN_STRIPPED_BYTES", 1000)
"""Stripped outputs smaller than this are discarded in favour of the original audio."""


# ---------------------------------------------------------------------------
# Batch analysis
# ---------------------------------------------------------------------------
WORKERS: int = _int_env("TONEWATCH_WORKERS", 4)
"""Default worker pool size for batch analysis."""

WRITE_BATCH_SIZE: int = _int_env("TONEWATCH_WRITE_BATCH", 20)
"""Results buffered before each write-back to the result sink."""
