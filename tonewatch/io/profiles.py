"""Detection profile dataclasses and helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

from tonewatch.errors import UnknownProfileError

PEAK_MODES = ("local_max", "all_bins")


@dataclass(frozen=True)
class DetectionProfile:
    name: str
    band_low_hz: float
    band_high_hz: float
    min_tone_duration: float
    track_tolerance_hz: float
    merge_tolerance_hz: float
    match_tone_sets: bool
    prefilter: str
    window_size: int = 2048
    hop_size: int = 512
    magnitude_floor: float = 0.02
    bucket_hz: float = 10.0
    merge_time_slack_s: float = 0.1
    force_split_step_hz: float = 18.0
    split_lookahead: int = 2
    silence_below_global_db: float = -28.0
    snr_above_noise_db: float = 6.0
    noise_percentile: float = 0.20
    noise_floor_fallback_db: float = -60.0
    peak_mode: str = "local_max"
    sample_rate: int = 16_000

    def with_overrides(self, **overrides: Any) -> "DetectionProfile":
        """Return a copy with the non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "peak_mode" in values and values["peak_mode"] not in PEAK_MODES:
            raise ValueError(f"peak_mode must be one of {PEAK_MODES}, got {values['peak_mode']!r}")
        return replace(self, **values)


TONE_MATCH = DetectionProfile(
    name="tone_match",
    band_low_hz=0.0,
    band_high_hz=5000.0,
    min_tone_duration=0.6,
    track_tolerance_hz=15.0,
    merge_tolerance_hz=20.0,
    match_tone_sets=True,
    prefilter="highpass=f=200,lowpass=f=3000,dynaudnorm",
)

TRANSCRIPTION = DetectionProfile(
    name="transcription",
    band_low_hz=200.0,
    band_high_hz=5000.0,
    min_tone_duration=0.5,
    track_tolerance_hz=20.0,
    merge_tolerance_hz=25.0,
    match_tone_sets=False,
    prefilter="highpass=f=200,lowpass=f=5000,dynaudnorm",
)


def default_detection_profiles() -> Dict[str, DetectionProfile]:
    profiles = [TONE_MATCH, TRANSCRIPTION]
    return {p.name.lower(): p for p in profiles}


def get_profile(name: str) -> DetectionProfile:
    profile = default_detection_profiles().get(str(name).strip().lower())
    if profile is None:
        raise UnknownProfileError(f"Unknown detection profile '{name}'")
    return profile


def serialize_profiles() -> Dict[str, Any]:
    """Return ordered JSON-serializable description of built-in profiles."""

    profiles = default_detection_profiles()
    ordered = sorted(profiles.values(), key=lambda p: p.name.lower())
    return {"profiles": [asdict(prof) for prof in ordered]}
