"""Autocorrelation-based fallback BPM estimate for sparse-peak signals."""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

import numpy as np
from scipy.signal import correlate

logger = logging.getLogger(__name__)

DEFAULT_BPM = 70


class PeriodicityEstimate(NamedTuple):
    bpm: int
    lag: int          # samples; 0 when degenerate
    score: float      # unnormalised autocorrelation at ``lag``
    degenerate: bool


def estimate_from_periodicity(
    signal: np.ndarray,
    sampling_rate_hz: float,
    default_bpm: int = DEFAULT_BPM,
) -> PeriodicityEstimate:
    """
    Estimate BPM from the lag with the strongest autocorrelation.

    Lags from ``floor(0.3 * r)`` (above 200 BPM) up to, but excluding,
    ``min(m // 2, 2 * floor(r))`` (below 30 BPM) are searched.  When no
    lag is searched, or none correlates positively, *default_bpm* is
    returned with ``degenerate=True``.
    """
    s = np.asarray(signal, dtype=np.float64)
    m = s.size
    min_lag = max(1, int(math.floor(sampling_rate_hz * 0.3)))
    max_lag = min(m // 2, int(math.floor(sampling_rate_hz)) * 2)

    best_lag = 0
    best_score = -math.inf
    if m > 0 and min_lag < max_lag:
        # full[m - 1 + L] == sum(s[i] * s[i + L])
        full = correlate(s, s, mode="full", method="direct")
        for lag in range(min_lag, max_lag):
            score = float(full[m - 1 + lag])
            if score > best_score:
                best_score = score
                best_lag = lag

    if best_lag <= 0 or not best_score > 0.0:
        logger.warning(
            "Degenerate autocorrelation (m=%d, lags=[%d, %d)); using default %d BPM",
            m, min_lag, max_lag, default_bpm,
        )
        return PeriodicityEstimate(default_bpm, 0, 0.0, degenerate=True)

    bpm = int(math.floor(60.0 * sampling_rate_hz / best_lag + 0.5))
    logger.debug("Autocorrelation: best lag=%d score=%.4f bpm=%d", best_lag, best_score, bpm)
    return PeriodicityEstimate(bpm, best_lag, best_score, degenerate=False)
