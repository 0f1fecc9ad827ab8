"""Tone detection engine coordinating spectra, gating, tracking, merging, and matching."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from tonewatch import config
from tonewatch.detection.merger import DetectionMerger
from tonewatch.detection.tracker import PeakTracker
from tonewatch.detection.types import MergedDetection, RawDetection, Tone, ToneSequence, ToneSet
from tonewatch.dsp.noise_estimation import NoiseGate, band_frame_peaks, estimate_noise_gate
from tonewatch.dsp.peaks import refine_peaks
from tonewatch.dsp.spectrum import compute_magnitude_frames
from tonewatch.io.profiles import TONE_MATCH, TRANSCRIPTION, DetectionProfile
from tonewatch.matching.matcher import (
    classify_detection,
    closest_configured,
    match_tone_set,
    match_tone_sets,
    pick_slot_tones,
)
from tonewatch.util.event_log import LoggingEventLogger
from tonewatch.util.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - type hint only
    from tonewatch.audio.decoder import FFmpegDecoder
    from tonewatch.audio.stripper import ToneStripper

MIN_SAMPLES = 100


@dataclass
class PipelineResult:
    tones: List[Tone] = field(default_factory=list)
    duration: float = 0.0
    gate: Optional[NoiseGate] = None
    raw: List[RawDetection] = field(default_factory=list)
    merged: List[MergedDetection] = field(default_factory=list)


def run_pipeline(
    samples: np.ndarray,
    sample_rate: int,
    profile: DetectionProfile = TONE_MATCH,
    tone_sets: Sequence[ToneSet] = (),
    event_logger: Optional[Any] = None,
) -> PipelineResult:
    """Find sustained tones in one call's PCM.

    Pure function of its inputs. When ``profile.match_tone_sets`` is set only
    candidates matching at least one tone set become tones, typed by the slot
    they matched; otherwise every candidate becomes an untyped tone.
    """

    def emit(event: str, **fields: Any) -> None:
        if event_logger:
            event_logger.log(event, profile=profile.name, **fields)

    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    duration = float(samples.size) / float(sample_rate) if sample_rate > 0 else 0.0
    result = PipelineResult(duration=duration)
    if samples.size < MIN_SAMPLES or sample_rate <= 0:
        return result

    frames = compute_magnitude_frames(
        samples,
        sample_rate,
        window_size=profile.window_size,
        hop_size=profile.hop_size,
        max_freq_hz=profile.band_high_hz,
    )
    gate = estimate_noise_gate(
        band_frame_peaks(frames, profile.band_low_hz, profile.band_high_hz),
        percentile=profile.noise_percentile,
        fallback_floor_db=profile.noise_floor_fallback_db,
        silence_below_global_db=profile.silence_below_global_db,
        snr_above_noise_db=profile.snr_above_noise_db,
    )
    result.gate = gate
    if gate is None:
        emit("detection_summary", frames=len(frames), raw=0, merged=0, tones=0, reason="no_signal")
        return result
    emit(
        "noise_gate",
        global_peak=gate.global_peak,
        noise_floor_db=gate.noise_floor_db,
        percentile_db=gate.percentile_db,
        frames=len(frames),
        active_frames=gate.active_frames,
    )

    tracker = PeakTracker(track_tolerance_hz=profile.track_tolerance_hz, bucket_hz=profile.bucket_hz)
    bin_hz = frames.bin_hz
    for index, spectrum in frames:
        if gate.silent[index]:
            continue
        start_time, end_time = frames.window_times(index)
        peaks = refine_peaks(
            spectrum,
            bin_hz,
            band_low_hz=profile.band_low_hz,
            band_high_hz=profile.band_high_hz,
            magnitude_floor=profile.magnitude_floor,
            peak_mode=profile.peak_mode,
        )
        tracker.ingest(start_time, end_time, peaks)
    result.raw = tracker.detections()

    merger = DetectionMerger(
        min_duration=profile.min_tone_duration,
        merge_tolerance_hz=profile.merge_tolerance_hz,
        time_slack_s=profile.merge_time_slack_s,
        force_split_step_hz=profile.force_split_step_hz,
        split_lookahead=profile.split_lookahead,
        logger=event_logger,
    )
    result.merged = merger.merge(result.raw)

    for md in result.merged:
        duration_s = md.duration
        if duration_s < profile.min_tone_duration:
            continue
        if not profile.match_tone_sets:
            result.tones.append(_to_tone(md, ""))
            emit(
                "transcription_tone",
                frequency_hz=md.frequency,
                duration_s=duration_s,
                start_s=md.start_time,
                end_s=md.end_time,
            )
            continue
        tone_type, matches = classify_detection(md.frequency, duration_s, tone_sets)
        if matches:
            result.tones.append(_to_tone(md, tone_type))
            emit(
                "tone_match",
                frequency_hz=md.frequency,
                duration_s=duration_s,
                merge_count=md.merge_count,
                tone_type=tone_type,
                matched=[f"{m.label} {m.tone_type} ({m.spec_frequency:.1f} Hz, diff {m.diff_hz:.1f} Hz)" for m in matches],
            )
        else:
            closest = closest_configured(md.frequency, tone_sets)
            emit(
                "tone_no_match",
                frequency_hz=md.frequency,
                duration_s=duration_s,
                merge_count=md.merge_count,
                magnitude=md.magnitude,
                closest=(
                    f"{closest.label} {closest.tone_type}: {closest.spec_frequency:.1f} Hz "
                    f"(tol {closest.tolerance_hz:.1f} Hz, diff {closest.diff_hz:.1f} Hz)"
                    if closest
                    else None
                ),
            )

    emit(
        "detection_summary",
        frames=len(frames),
        peaks=tracker.peaks_seen,
        raw=len(result.raw),
        eligible=merger.eligible,
        merged=len(result.merged),
        splits=merger.splits,
        tones=len(result.tones),
    )
    return result


def _to_tone(md: MergedDetection, tone_type: str) -> Tone:
    return Tone(
        frequency=md.frequency,
        start_time=md.start_time,
        end_time=md.end_time,
        duration=md.end_time - md.start_time,
        tone_type=tone_type,
    )


def build_sequence(result: PipelineResult, tone_sets: Sequence[ToneSet] = ()) -> ToneSequence:
    if not result.tones:
        return ToneSequence.empty(duration=result.duration)
    a_tone, b_tone, long_tone = pick_slot_tones(result.tones)
    sequence = ToneSequence(
        tones=list(result.tones),
        duration=result.duration,
        a_tone=a_tone,
        b_tone=b_tone,
        long_tone=long_tone,
        has_tones=True,
    )
    sequence.matched_tone_sets = match_tone_sets(sequence, tone_sets)
    sequence.matched_tone_set = sequence.matched_tone_sets[0] if sequence.matched_tone_sets else None
    return sequence


class ToneDetector:
    """Call-level facade: decode, analyse, match, and strip."""

    def __init__(
        self,
        profile: DetectionProfile = TONE_MATCH,
        transcription_profile: DetectionProfile = TRANSCRIPTION,
        *,
        decoder: Optional["FFmpegDecoder"] = None,
        stripper: Optional["ToneStripper"] = None,
        event_logger: Optional[Any] = None,
        min_audio_bytes: int = config.MIN_AUDIO_BYTES,
    ):
        self.profile = profile
        self.transcription_profile = transcription_profile
        self._decoder = decoder
        self._stripper = stripper
        self.logger = get_logger(__name__)
        self.event_logger = event_logger if event_logger is not None else LoggingEventLogger(self.logger)
        self.min_audio_bytes = int(min_audio_bytes)

    def _decoder_for(self, profile: DetectionProfile) -> "FFmpegDecoder":
        from tonewatch.audio.decoder import FFmpegDecoder

        if self._decoder is not None:
            return self._decoder.with_filter(profile.prefilter)
        return FFmpegDecoder(sample_rate=profile.sample_rate, audio_filter=profile.prefilter)

    @property
    def stripper(self) -> "ToneStripper":
        if self._stripper is None:
            from tonewatch.audio.stripper import ToneStripper

            self._stripper = ToneStripper()
        return self._stripper

    def analyze(self, samples: np.ndarray, sample_rate: int, tone_sets: Sequence[ToneSet] = ()) -> ToneSequence:
        result = run_pipeline(samples, sample_rate, self.profile, tone_sets, self.event_logger)
        sequence = build_sequence(result, tone_sets)
        self.logger.debug(
            "analyzed %d samples at %d Hz, %d tone(s), %d matched tone set(s)",
            int(np.asarray(samples).size),
            sample_rate,
            len(sequence.tones),
            len(sequence.matched_tone_sets),
        )
        return sequence

    def detect(self, audio: bytes, tone_sets: Sequence[ToneSet] = ()) -> ToneSequence:
        """Decode an encoded call recording and analyse it; decode errors propagate."""
        if len(audio) < self.min_audio_bytes:
            return ToneSequence.empty()
        samples, sample_rate = self._decoder_for(self.profile).decode(audio)
        return self.analyze(samples, sample_rate, tone_sets)

    def find_all_sustained_tones(self, samples: np.ndarray, sample_rate: int) -> List[Tone]:
        result = run_pipeline(samples, sample_rate, self.transcription_profile, (), self.event_logger)
        return result.tones

    def detect_all_tones_for_transcription(self, audio: bytes) -> List[Tone]:
        """Every sustained tone worth removing before speech-to-text, untyped."""
        if len(audio) < self.min_audio_bytes:
            return []
        samples, sample_rate = self._decoder_for(self.transcription_profile).decode(audio)
        tones = self.find_all_sustained_tones(samples, sample_rate)
        self.logger.info("found %d sustained tone(s) to remove before transcription", len(tones))
        return tones

    def remove_tones_from_audio(self, audio: bytes, tones: Sequence[Tone]) -> bytes:
        return self.stripper.strip(audio, tones)

    @staticmethod
    def match_tone_sets(sequence: Optional[ToneSequence], configured: Sequence[ToneSet]) -> List[ToneSet]:
        return match_tone_sets(sequence, configured)

    @staticmethod
    def match_tone_set(sequence: Optional[ToneSequence], configured: Sequence[ToneSet]) -> Optional[ToneSet]:
        return match_tone_set(sequence, configured)
