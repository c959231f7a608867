"""
Signal conditioning for the raw brightness stream.

Algorithm
---------
1. Subtract the arithmetic mean of the whole sequence (DC removal).
   Baseline wander is not modelled.
2. Apply a centred moving average of radius ``w = min(5, n // 10)``.
   Only fully-covered positions are kept, so the output is ``2w``
   samples shorter than the input.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

MAX_RADIUS = 5

# Smoothed sequences shorter than this cannot be used for peak counting.
MIN_CONDITIONED_LENGTH = 10


def smoothing_radius(n: int) -> int:
    """Half-width of the moving-average window for *n* input samples."""
    return min(MAX_RADIUS, n // 10)


def condition_signal(values: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Remove the DC offset from *values* and smooth the result.

    Parameters
    ----------
    values:
        Raw brightness values in capture order.  Not modified.

    Returns
    -------
    numpy.ndarray
        float64 array of length ``n - 2 * smoothing_radius(n)``.  May be
        shorter than :data:`MIN_CONDITIONED_LENGTH`; see :func:`is_too_short`.
    """
    signal = np.array(values, dtype=np.float64)
    n = signal.size
    if n == 0:
        return signal

    normalized = signal - signal.mean()

    width = 2 * smoothing_radius(n) + 1
    sums = np.convolve(normalized, np.ones(width), mode="valid")
    return sums / width


def is_too_short(signal: np.ndarray) -> bool:
    return len(signal) < MIN_CONDITIONED_LENGTH
