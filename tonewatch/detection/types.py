"""Dataclasses shared across tracking, merging, matching, and stripping layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

TONE_TYPE_A = "A"
TONE_TYPE_B = "B"
TONE_TYPE_LONG = "Long"
TONE_TYPES = (TONE_TYPE_A, TONE_TYPE_B, TONE_TYPE_LONG)


@dataclass
class Tone:
    frequency: float
    start_time: float
    end_time: float
    duration: float
    tone_type: str = ""  # "A", "B", "Long", or "" when ambiguous/unmatched


@dataclass
class ToneSpec:
    frequency: float
    min_duration: float = 0.0
    max_duration: float = 0.0  # 0 = unbounded

    def accepts_duration(self, duration: float) -> bool:
        if duration < self.min_duration:
            return False
        return self.max_duration == 0 or duration <= self.max_duration


@dataclass
class ToneSet:
    id: str
    label: str = ""
    a_tone: Optional[ToneSpec] = None
    b_tone: Optional[ToneSpec] = None
    long_tone: Optional[ToneSpec] = None
    tolerance: float = 0.0
    min_duration: float = 0.0

    def spec_for(self, tone_type: str) -> Optional[ToneSpec]:
        if tone_type == TONE_TYPE_A:
            return self.a_tone
        if tone_type == TONE_TYPE_B:
            return self.b_tone
        if tone_type == TONE_TYPE_LONG:
            return self.long_tone
        return None

    @property
    def is_long_only(self) -> bool:
        return self.long_tone is not None and self.a_tone is None and self.b_tone is None


@dataclass
class ToneSequence:
    tones: List[Tone] = field(default_factory=list)
    duration: float = 0.0
    a_tone: Optional[Tone] = None
    b_tone: Optional[Tone] = None
    long_tone: Optional[Tone] = None
    has_tones: bool = False
    matched_tone_set: Optional[ToneSet] = None
    matched_tone_sets: List[ToneSet] = field(default_factory=list)

    @classmethod
    def empty(cls, duration: float = 0.0) -> "ToneSequence":
        return cls(tones=[], duration=duration, has_tones=False)


@dataclass
class RawDetection:
    frequency: float
    start_time: float
    end_time: float
    magnitude: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def overlaps(self, start_time: float, end_time: float) -> bool:
        return start_time <= self.end_time and end_time >= self.start_time


@dataclass
class MergedDetection:
    frequency: float
    start_time: float
    end_time: float
    magnitude: float
    merge_count: int = 1
    frequency_history: List[float] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @classmethod
    def from_raw(cls, det: RawDetection) -> "MergedDetection":
        return cls(
            frequency=det.frequency,
            start_time=det.start_time,
            end_time=det.end_time,
            magnitude=det.magnitude,
            merge_count=1,
            frequency_history=[det.frequency],
        )


@dataclass
class ToneMatch:
    """One (tone set, slot) a merged detection satisfied."""

    tone_set_id: str
    label: str
    tone_type: str
    spec_frequency: float
    tolerance_hz: float
    diff_hz: float
