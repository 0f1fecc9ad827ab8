"""Consolidate raw detections into tone candidates."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from tonewatch.detection.types import MergedDetection, RawDetection


class DetectionMerger:
    """Fold raw detections into merged candidates.

    A raw detection joins the first candidate within ``merge_tolerance_hz`` whose
    span overlaps it (allowing ``time_slack_s`` on either side), unless the
    candidate's recent frequency history says the new detection is a different
    tone. That force split keeps two back-to-back dispatch tones a few tens of
    Hz apart from being averaged into one.
    """

    def __init__(
        self,
        *,
        min_duration: float,
        merge_tolerance_hz: float = 20.0,
        time_slack_s: float = 0.1,
        force_split_step_hz: float = 18.0,
        split_lookahead: int = 2,
        logger: Optional[Any] = None,
    ):
        self.min_duration = float(min_duration)
        self.merge_tolerance_hz = float(merge_tolerance_hz)
        self.time_slack_s = float(time_slack_s)
        self.force_split_step_hz = float(force_split_step_hz)
        self.split_lookahead = max(1, int(split_lookahead))
        self.logger = logger
        self.splits = 0
        self.eligible = 0

    def _log(self, event: str, **fields: Any) -> None:
        if not self.logger:
            return
        self.logger.log(event, **fields)

    def merge(self, detections: Iterable[RawDetection]) -> List[MergedDetection]:
        merged: List[MergedDetection] = []
        for det in detections:
            if det.duration < self.min_duration:
                continue
            self.eligible += 1
            target = self._find_target(merged, det)
            if target is None:
                merged.append(MergedDetection.from_raw(det))
                continue
            old_freq = target.frequency
            self._absorb(target, det)
            self._log(
                "detection_merge",
                frequency_hz=det.frequency,
                into_hz=old_freq,
                result_hz=target.frequency,
                merge_count=target.merge_count,
                start_s=target.start_time,
                end_s=target.end_time,
            )
        return merged

    def _find_target(self, merged: List[MergedDetection], det: RawDetection) -> Optional[MergedDetection]:
        for md in merged:
            if abs(det.frequency - md.frequency) > self.merge_tolerance_hz:
                continue
            if not self._times_overlap(md, det):
                continue
            if self.should_force_split(md, det.frequency):
                self.splits += 1
                self._log(
                    "detection_split",
                    frequency_hz=det.frequency,
                    candidate_hz=md.frequency,
                    recent_hz=self.recent_median(md),
                )
                continue
            return md
        return None

    def _times_overlap(self, md: MergedDetection, det: RawDetection) -> bool:
        slack = self.time_slack_s
        return det.start_time <= md.end_time + slack and det.end_time >= md.start_time - slack

    def recent_median(self, md: MergedDetection) -> Optional[float]:
        if len(md.frequency_history) < self.split_lookahead:
            return None
        recent = sorted(md.frequency_history[-self.split_lookahead:])
        return recent[len(recent) // 2]

    def should_force_split(self, md: MergedDetection, frequency: float) -> bool:
        recent = self.recent_median(md)
        if recent is None:
            return False
        return abs(frequency - recent) > self.force_split_step_hz

    @staticmethod
    def _absorb(md: MergedDetection, det: RawDetection) -> None:
        total = md.merge_count + 1
        md.frequency = (md.frequency * md.merge_count + det.frequency) / float(total)
        if det.start_time < md.start_time:
            md.start_time = det.start_time
        if det.end_time > md.end_time:
            md.end_time = det.end_time
        if det.magnitude > md.magnitude:
            md.magnitude = det.magnitude
        md.merge_count = total
        md.frequency_history.append(det.frequency)
