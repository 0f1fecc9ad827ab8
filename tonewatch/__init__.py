"""
tonewatch: sustained dispatch tone detection and tone-set matching for radio call audio.

This package provides:
- A spectral tone detection pipeline over mono PCM (numpy/scipy)
- Tone-set matching for A/B paging pairs and long tones
- Tone removal ahead of speech-to-text via ffmpeg

Usage:
    from tonewatch import ToneDetector, parse_tone_sets
    detector = ToneDetector()
    sequence = detector.detect(audio_bytes, parse_tone_sets(config_json))
"""
from __future__ import annotations

__version__ = "0.1.0"

from tonewatch.detection.engine import ToneDetector, run_pipeline
from tonewatch.io.tone_sets import parse_tone_sets, serialize_tone_sequence, serialize_tone_sets

__all__ = [
    "ToneDetector",
    "run_pipeline",
    "parse_tone_sets",
    "serialize_tone_sets",
    "serialize_tone_sequence",
    "__version__",
]
