"""Framing helpers that wrap numpy stride tricks."""

from __future__ import annotations

import numpy as np


def window_count(num_samples: int, window: int, hop: int) -> int:
    """Number of full windows; a trailing partial window is dropped, never padded."""
    if window <= 0 or hop <= 0 or num_samples < window:
        return 0
    return (num_samples - window) // hop + 1


def frame_signal(x: np.ndarray, window: int, hop: int) -> np.ndarray:
    """Return a read-only (frames, window) view of overlapping windows."""
    x = np.asarray(x)
    if x.ndim != 1:
        raise ValueError("framing only supports 1D arrays")
    count = window_count(x.size, window, hop)
    if count == 0:
        return np.empty((0, window), dtype=x.dtype)
    shape = (count, window)
    strides = (x.strides[0] * hop, x.strides[0])
    return np.lib.stride_tricks.as_strided(x, shape=shape, strides=strides, writeable=False)


def hann_window(size: int) -> np.ndarray:
    """Symmetric Hann taper, 0.5 * (1 - cos(2*pi*i/(N-1)))."""
    return np.hanning(size)
