"""Numeric helper functions used across DSP logic."""

import numpy as np


def db20(x: np.ndarray) -> np.ndarray:
    """Return 20 * log10(x) for amplitude ratios, floored to keep inputs positive."""
    return 20.0 * np.log10(np.maximum(x, 1e-20))
