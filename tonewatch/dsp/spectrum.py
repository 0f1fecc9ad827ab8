"""Short-time magnitude spectra for tone analysis."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np  # type: ignore
from scipy import fft as sp_fft  # type: ignore

from .windowing import frame_signal, hann_window, window_count

DEFAULT_WINDOW_SIZE = 2048
DEFAULT_HOP_SIZE = 512

# Frames transformed per FFT call; bounds peak memory on long recordings.
_CHUNK_FRAMES = 256


@dataclass
class SpectralFrames:
    """Magnitude spectra for every full window of a recording.

    ``magnitudes`` has one row per window and one column per FFT bin, starting at
    0 Hz. Columns may be truncated above the band of interest; ``bin_hz`` still
    maps column ``k`` to ``k * bin_hz``.
    """

    magnitudes: np.ndarray
    sample_rate: int
    window_size: int
    hop_size: int

    @property
    def bin_hz(self) -> float:
        return float(self.sample_rate) / float(self.window_size)

    @property
    def frequencies(self) -> np.ndarray:
        return np.arange(self.magnitudes.shape[1], dtype=np.float64) * self.bin_hz

    def window_times(self, index: int) -> Tuple[float, float]:
        start = index * self.hop_size
        return start / float(self.sample_rate), (start + self.window_size) / float(self.sample_rate)

    def __len__(self) -> int:
        return int(self.magnitudes.shape[0])

    def __iter__(self) -> Iterator[Tuple[int, np.ndarray]]:
        for index in range(len(self)):
            yield index, self.magnitudes[index]


def compute_magnitude_frames(
    samples: np.ndarray,
    sample_rate: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
    hop_size: int = DEFAULT_HOP_SIZE,
    max_freq_hz: Optional[float] = None,
) -> SpectralFrames:
    """Hann-windowed |FFT|/N per window, bins below Nyquist only.

    When ``max_freq_hz`` is given, bins above it are discarded except for two
    guard bins so peak interpolation at the band edge still sees its neighbour.
    """
    samples = np.asarray(samples, dtype=np.float64)
    n_bins = window_size // 2
    if max_freq_hz is not None:
        bin_hz = float(sample_rate) / float(window_size)
        n_bins = min(n_bins, int(math.floor(max_freq_hz / bin_hz)) + 2)
    n_bins = max(n_bins, 0)

    count = window_count(samples.size, window_size, hop_size)
    magnitudes = np.zeros((count, n_bins), dtype=np.float64)
    if count == 0 or n_bins == 0:
        return SpectralFrames(magnitudes, int(sample_rate), window_size, hop_size)

    frames = frame_signal(samples, window_size, hop_size)
    taper = hann_window(window_size)
    for start in range(0, count, _CHUNK_FRAMES):
        stop = min(start + _CHUNK_FRAMES, count)
        coeffs = sp_fft.rfft(frames[start:stop] * taper, n=window_size, axis=1)
        magnitudes[start:stop] = np.abs(coeffs[:, :n_bins]) / float(window_size)
    return SpectralFrames(magnitudes, int(sample_rate), window_size, hop_size)
