"""Per-call noise-floor estimation and silence gating."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np  # type: ignore

from tonewatch.util.math import db20

from .spectrum import SpectralFrames

# Frame peaks below this are treated as digital silence.
MIN_GLOBAL_PEAK = 1e-20


@dataclass
class NoiseGate:
    global_peak: float
    noise_floor_db: float
    percentile_db: float
    relative_db: np.ndarray
    silent: np.ndarray

    @property
    def active_frames(self) -> int:
        return int(np.count_nonzero(~self.silent))


def band_frame_peaks(frames: SpectralFrames, band_low_hz: float, band_high_hz: float) -> np.ndarray:
    """Maximum in-band magnitude for every frame (0.0 when the band holds no bins)."""
    freqs = frames.frequencies
    in_band = (freqs >= band_low_hz) & (freqs <= band_high_hz)
    if len(frames) == 0:
        return np.zeros(0, dtype=np.float64)
    if not np.any(in_band):
        return np.zeros(len(frames), dtype=np.float64)
    return np.max(frames.magnitudes[:, in_band], axis=1)


def estimate_noise_gate(
    frame_peaks: np.ndarray,
    *,
    percentile: float = 0.20,
    fallback_floor_db: float = -60.0,
    silence_below_global_db: float = -28.0,
    snr_above_noise_db: float = 6.0,
) -> Optional[NoiseGate]:
    """Adaptive noise floor from the quietest frames.

    Frame peaks are expressed in dB relative to the loudest frame. The floor is
    the median of the values at or below the ``percentile`` quantile. A frame is
    silent when it sits more than ``-silence_below_global_db`` under the global
    peak or less than ``snr_above_noise_db`` above the floor.

    Returns None when there is nothing to analyse (no frames, or a global peak
    that is numerically zero).
    """
    peaks = np.asarray(frame_peaks, dtype=np.float64)
    if peaks.size == 0:
        return None
    global_peak = float(np.max(peaks))
    if global_peak < MIN_GLOBAL_PEAK:
        return None

    relative_db = db20(np.maximum(peaks, MIN_GLOBAL_PEAK) / global_peak)
    ordered = np.sort(relative_db)
    q_index = min(int(float(ordered.size) * percentile), ordered.size - 1)
    q_db = float(ordered[q_index])

    quiet = np.sort(relative_db[relative_db <= q_db])
    noise_floor_db = float(quiet[quiet.size // 2]) if quiet.size else float(fallback_floor_db)

    silent = (relative_db < silence_below_global_db) | (relative_db < (noise_floor_db + snr_above_noise_db))
    return NoiseGate(
        global_peak=global_peak,
        noise_floor_db=noise_floor_db,
        percentile_db=q_db,
        relative_db=relative_db,
        silent=silent,
    )
