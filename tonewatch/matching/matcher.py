"""Classify tone candidates against configured tone sets."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from tonewatch.detection.types import (
    TONE_TYPE_A,
    TONE_TYPE_B,
    TONE_TYPE_LONG,
    TONE_TYPES,
    Tone,
    ToneMatch,
    ToneSequence,
    ToneSet,
    ToneSpec,
)

# Tolerances under this are ratios of RATIO_SCALE_HZ rather than absolute Hz.
RATIO_THRESHOLD = 1.0
RATIO_SCALE_HZ = 500.0
PAIR_GAP_S = 0.5


def resolve_tolerance_hz(tolerance: float) -> float:
    """0.02 -> 10 Hz (ratio of 500 Hz); 15 -> 15 Hz (already absolute)."""
    tolerance = float(tolerance)
    if tolerance < RATIO_THRESHOLD:
        return tolerance * RATIO_SCALE_HZ
    return tolerance


def frequency_matches(detected: float, expected: float, tolerance_hz: float) -> bool:
    return abs(detected - expected) <= tolerance_hz


def spec_matches(spec: ToneSpec, frequency: float, duration: float, tolerance_hz: float) -> bool:
    return frequency_matches(frequency, spec.frequency, tolerance_hz) and spec.accepts_duration(duration)


def classify_detection(
    frequency: float,
    duration: float,
    tone_sets: Iterable[ToneSet],
) -> Tuple[str, List[ToneMatch]]:
    """Check one candidate against every slot of every tone set.

    All matches are returned, one per (set, slot). The tone type is the single
    distinct slot type matched, or "" when none or more than one type matched.
    """
    matches: List[ToneMatch] = []
    for tone_set in tone_sets:
        tolerance_hz = resolve_tolerance_hz(tone_set.tolerance)
        for tone_type in TONE_TYPES:
            spec = tone_set.spec_for(tone_type)
            if spec is None or not spec_matches(spec, frequency, duration, tolerance_hz):
                continue
            matches.append(
                ToneMatch(
                    tone_set_id=tone_set.id,
                    label=tone_set.label,
                    tone_type=tone_type,
                    spec_frequency=spec.frequency,
                    tolerance_hz=tolerance_hz,
                    diff_hz=abs(frequency - spec.frequency),
                )
            )
    types = {m.tone_type for m in matches}
    tone_type = types.pop() if len(types) == 1 else ""
    return tone_type, matches


def closest_configured(frequency: float, tone_sets: Iterable[ToneSet]) -> Optional[ToneMatch]:
    """Nearest configured slot by frequency, for no-match diagnostics."""
    best: Optional[ToneMatch] = None
    for tone_set in tone_sets:
        tolerance_hz = resolve_tolerance_hz(tone_set.tolerance)
        for tone_type in TONE_TYPES:
            spec = tone_set.spec_for(tone_type)
            if spec is None:
                continue
            diff = abs(frequency - spec.frequency)
            if best is None or diff < best.diff_hz:
                best = ToneMatch(tone_set.id, tone_set.label, tone_type, spec.frequency, tolerance_hz, diff)
    return best


def _candidates(tones: Sequence[Tone], spec: ToneSpec, tolerance_hz: float) -> List[Tone]:
    return [tone for tone in tones if spec_matches(spec, tone.frequency, tone.duration, tolerance_hz)]


def closest_following(a_tone: Tone, b_candidates: Sequence[Tone], max_gap_s: float = PAIR_GAP_S) -> Optional[Tone]:
    """B candidate ending no earlier than ``a_tone`` with the smallest |B.start - A.end|.

    Gaps may be negative (overlap) down to ``-max_gap_s``. Ties keep the
    earlier candidate in ``b_candidates`` order.
    """
    closest: Optional[Tone] = None
    closest_gap = 0.0
    for b_tone in b_candidates:
        if b_tone.end_time < a_tone.end_time:
            continue
        gap = b_tone.start_time - a_tone.end_time
        if gap < -max_gap_s or gap > max_gap_s:
            continue
        if closest is None or abs(gap) < abs(closest_gap):
            closest = b_tone
            closest_gap = gap
    return closest


def matches_tone_set(sequence: ToneSequence, tone_set: ToneSet) -> bool:
    """Sequence-level match of one tone set.

    Long-only sets need one satisfying tone. Sets with A and/or B need a
    candidate per configured slot, and with both configured some A-tone must
    pair with its closest following B-tone whose frequency fits the B spec.
    """
    tolerance_hz = resolve_tolerance_hz(tone_set.tolerance)
    tones = sequence.tones

    if tone_set.is_long_only:
        return bool(_candidates(tones, tone_set.long_tone, tolerance_hz))

    a_tones: List[Tone] = []
    b_tones: List[Tone] = []
    if tone_set.a_tone is not None:
        a_tones = _candidates(tones, tone_set.a_tone, tolerance_hz)
        if not a_tones:
            return False
    if tone_set.b_tone is not None:
        b_tones = _candidates(tones, tone_set.b_tone, tolerance_hz)
        if not b_tones:
            return False

    if tone_set.a_tone is None or tone_set.b_tone is None:
        return tone_set.a_tone is not None or tone_set.b_tone is not None

    for a_tone in sorted(a_tones, key=lambda t: t.start_time):
        b_tone = closest_following(a_tone, b_tones)
        if b_tone is not None and frequency_matches(b_tone.frequency, tone_set.b_tone.frequency, tolerance_hz):
            return True
    return False


def match_tone_sets(sequence: Optional[ToneSequence], configured: Sequence[ToneSet]) -> List[ToneSet]:
    """Every configured tone set the sequence satisfies, in configuration order."""
    if sequence is None or not sequence.has_tones or not configured:
        return []
    return [tone_set for tone_set in configured if matches_tone_set(sequence, tone_set)]


def match_tone_set(sequence: Optional[ToneSequence], configured: Sequence[ToneSet]) -> Optional[ToneSet]:
    matched = match_tone_sets(sequence, configured)
    return matched[0] if matched else None


def pick_slot_tones(tones: Sequence[Tone]) -> Tuple[Optional[Tone], Optional[Tone], Optional[Tone]]:
    """First A, B, and Long tone in sequence order."""
    picked = {TONE_TYPE_A: None, TONE_TYPE_B: None, TONE_TYPE_LONG: None}
    for tone in tones:
        if tone.tone_type in picked and picked[tone.tone_type] is None:
            picked[tone.tone_type] = tone
    return picked[TONE_TYPE_A], picked[TONE_TYPE_B], picked[TONE_TYPE_LONG]
