"""Grow raw per-frequency detections from refined spectral peaks over time."""

from __future__ import annotations

from typing import Dict, List

from tonewatch.detection.types import RawDetection


class PeakTracker:
    """Bucket refined peaks into raw detections.

    Detections live in lists keyed by ``int(freq / bucket_hz)``. A peak extends
    the first detection (buckets in ascending order, detections in creation
    order) whose bucket center is within ``track_tolerance_hz`` and whose span
    overlaps the current window. Otherwise it opens a detection in its own
    bucket.
    """

    def __init__(self, *, track_tolerance_hz: float = 15.0, bucket_hz: float = 10.0):
        self.track_tolerance_hz = float(track_tolerance_hz)
        self.bucket_hz = float(bucket_hz)
        self.buckets: Dict[int, List[RawDetection]] = {}
        self.peaks_seen = 0

    def ingest(self, start_time: float, end_time: float, peaks) -> None:
        for freq, mag in peaks:
            self._record(float(freq), float(mag), start_time, end_time)

    def _record(self, freq: float, mag: float, start_time: float, end_time: float) -> None:
        self.peaks_seen += 1
        det = self._find_open(freq, start_time, end_time)
        if det is None:
            key = int(freq / self.bucket_hz)
            self.buckets.setdefault(key, []).append(
                RawDetection(frequency=freq, start_time=start_time, end_time=end_time, magnitude=mag)
            )
            return
        if end_time > det.end_time:
            det.end_time = end_time
        if start_time < det.start_time:
            det.start_time = start_time
        if mag > det.magnitude:
            det.magnitude = mag
            det.frequency = freq

    def _find_open(self, freq: float, start_time: float, end_time: float):
        for key in sorted(self.buckets):
            if abs(freq - key * self.bucket_hz) > self.track_tolerance_hz:
                continue
            for det in self.buckets[key]:
                if det.overlaps(start_time, end_time):
                    return det
        return None

    def detections(self) -> List[RawDetection]:
        """All raw detections ordered by start time, then frequency."""
        found = [det for key in sorted(self.buckets) for det in self.buckets[key]]
        found.sort(key=lambda det: (det.start_time, det.frequency))
        return found
