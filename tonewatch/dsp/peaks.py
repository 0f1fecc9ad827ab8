"""Spectral peak picking with sub-bin frequency refinement."""

from __future__ import annotations

from typing import List, Tuple

import numpy as np  # type: ignore


def parabolic_offset(y_minus: float, y0: float, y_plus: float) -> float:
    """Vertex offset (in bins) of the parabola through three equally spaced points."""
    denom = y_minus - 2.0 * y0 + y_plus
    if denom == 0.0:
        return 0.0
    return 0.5 * (y_minus - y_plus) / denom


def refine_peaks(
    magnitudes: np.ndarray,
    bin_hz: float,
    *,
    band_low_hz: float,
    band_high_hz: float,
    magnitude_floor: float,
    peak_mode: str = "local_max",
) -> List[Tuple[float, float]]:
    """Return ``(frequency_hz, magnitude)`` for every qualifying bin, low to high.

    A bin qualifies when its center frequency lies in the band and its magnitude
    exceeds ``magnitude_floor``. In ``local_max`` mode it must also be at least
    as large as both neighbours; ``all_bins`` keeps every bin over the floor.
    Bins with two neighbours get a parabolic correction clamped to half a bin.
    """
    mags = np.asarray(magnitudes, dtype=np.float64)
    n = mags.size
    if n == 0:
        return []
    freqs = np.arange(n, dtype=np.float64) * bin_hz
    mask = (freqs >= band_low_hz) & (freqs <= band_high_hz) & (mags > magnitude_floor)
    if peak_mode == "local_max":
        left = np.r_[mags[0], mags[:-1]]
        right = np.r_[mags[1:], mags[-1]]
        mask &= (mags >= left) & (mags >= right)
    elif peak_mode != "all_bins":
        raise ValueError(f"unknown peak_mode '{peak_mode}'")

    peaks: List[Tuple[float, float]] = []
    for idx in np.flatnonzero(mask):
        i = int(idx)
        freq = float(freqs[i])
        mag = float(mags[i])
        if 0 < i < n - 1:
            delta = parabolic_offset(float(mags[i - 1]), mag, float(mags[i + 1]))
            delta = max(-0.5, min(0.5, delta))
            freq += delta * bin_hz
        peaks.append((freq, mag))
    return peaks
