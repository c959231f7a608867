"""
Direct beat counting on a conditioned PPG signal.

A sample is a peak when it is strictly higher than its two neighbours on
either side and above a fraction of the signal RMS.  Peaks closer than the
refractory spacing to the previously accepted one are dropped so that a
single beat is not counted twice.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Tuple

import numpy as np

from pulse_monitor.conditioner import MIN_CONDITIONED_LENGTH

logger = logging.getLogger(__name__)


class PeakDetection(NamedTuple):
    """Outcome of a peak-counting pass."""

    peak_indices: Tuple[int, ...]
    bpm: int
    #: False when the signal was too short to scan at all.
    enough_data: bool
    #: True when the peak count is large enough to trust ``bpm``.
    reliable: bool

    @property
    def peak_count(self) -> int:
        return len(self.peak_indices)


class PeakDetector:
    """
    Parameters
    ----------
    sampling_rate_hz:
        Nominal rate of the sample stream.  Used to turn a peak count into
        beats per minute.
    threshold_fraction:
        Peaks must exceed ``threshold_fraction * rms(signal)`` (default 0.3).
    refractory_samples:
        Minimum index distance between accepted peaks (default 6, about
        0.6 s at 10 Hz, i.e. a 200 BPM ceiling).
    min_peaks:
        Fewer accepted peaks than this marks the estimate unreliable
        (default 3).
    """

    def __init__(
        self,
        sampling_rate_hz: float = 10.0,
        threshold_fraction: float = 0.3,
        refractory_samples: int = 6,
        min_peaks: int = 3,
    ) -> None:
        self.sampling_rate_hz = sampling_rate_hz
        self.threshold_fraction = threshold_fraction
        self.refractory_samples = refractory_samples
        self.min_peaks = min_peaks

    def detect(self, signal: np.ndarray) -> PeakDetection:
        s = np.asarray(signal, dtype=np.float64)
        m = s.size
        if m < MIN_CONDITIONED_LENGTH:
            return PeakDetection((), 0, enough_data=False, reliable=False)

        # Upstream mean subtraction makes RMS the standard deviation.
        rms = float(np.sqrt(np.mean(s * s)))
        threshold = rms * self.threshold_fraction

        peaks = []
        last_peak = -10
        for i in range(2, m - 2):
            v = s[i]
            if not (v > s[i - 1] and v > s[i + 1] and v > s[i - 2] and v > s[i + 2]):
                continue
            if v <= threshold:
                continue
            if i - last_peak >= self.refractory_samples:
                peaks.append(i)
                last_peak = i

        duration_s = m / self.sampling_rate_hz
        # Half-up rounding, not banker's rounding.
        bpm = int(math.floor(len(peaks) / duration_s * 60.0 + 0.5))
        reliable = len(peaks) >= self.min_peaks
        logger.debug(
            "Peak scan: m=%d threshold=%.4f peaks=%d bpm=%d reliable=%s",
            m, threshold, len(peaks), bpm, reliable,
        )
        return PeakDetection(tuple(peaks), bpm, enough_data=True, reliable=reliable)
