"""
BPM estimation pipeline.

Algorithm
---------
1. Refuse sessions with fewer than ``min_samples`` (15) raw samples.
2. Condition the raw values (DC removal + moving average).
3. Count peaks on the conditioned signal.
4. When fewer than 3 peaks are accepted, estimate the dominant period by
   autocorrelation instead.
5. Clamp the estimate to the physiological band (40 – 200 BPM) and tag it
   with a quality tier derived from the raw sample count.

Every numeric failure has a defined fallback, so :meth:`BpmEstimator.estimate`
always returns either an :class:`EstimationResult` or an
:class:`InsufficientData` marker and never raises.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from pulse_monitor import conditioner
from pulse_monitor.peak_detector import PeakDetector
from pulse_monitor.periodicity import DEFAULT_BPM, estimate_from_periodicity

logger = logging.getLogger(__name__)

BPM_MIN = 40
BPM_MAX = 200
MIN_SESSION_SAMPLES = 15

HIGH_QUALITY_SAMPLES = 100
MEDIUM_QUALITY_SAMPLES = 50


class Method(str, enum.Enum):
    PEAK_COUNT = "peak_count"
    PERIODICITY = "periodicity"
    INSUFFICIENT_DATA = "insufficient_data"


class Quality(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class EstimationResult:
    """Final heart-rate reading for one completed session."""

    bpm: int
    method: Method
    quality: Quality
    peak_count: int
    raw_bpm: int
    sample_count: int

    @property
    def out_of_range(self) -> bool:
        """True when the unclamped estimate fell outside 40 – 200 BPM."""
        return not BPM_MIN <= self.raw_bpm <= BPM_MAX


@dataclass(frozen=True)
class InsufficientData:
    """Returned instead of a result when too few samples were collected."""

    sample_count: int
    min_samples: int = MIN_SESSION_SAMPLES


def clamp_bpm(bpm: int, low: int = BPM_MIN, high: int = BPM_MAX) -> int:
    return min(high, max(low, int(bpm)))


def classify_quality(sample_count: int) -> Quality:
    """Map a raw sample count onto a quality tier."""
    if sample_count >= HIGH_QUALITY_SAMPLES:
        return Quality.HIGH
    if sample_count >= MEDIUM_QUALITY_SAMPLES:
        return Quality.MEDIUM
    return Quality.LOW


class BpmEstimator:
    """
    Stateless heart-rate estimator for one batch of brightness samples.

    Parameters
    ----------
    sampling_rate_hz:
        Nominal rate of the sample stream (default 10 Hz).  Index-based
        arithmetic assumes near-uniform spacing; jitter degrades accuracy
        but never causes a failure.
    min_samples:
        Minimum raw sample count before any estimation is attempted.
    bpm_low, bpm_high:
        Clamp range for the reported BPM.
    threshold_fraction, refractory_samples, min_peaks:
        Forwarded to :class:`~pulse_monitor.peak_detector.PeakDetector`.
    """

    def __init__(
        self,
        sampling_rate_hz: float = 10.0,
        min_samples: int = MIN_SESSION_SAMPLES,
        bpm_low: int = BPM_MIN,
        bpm_high: int = BPM_MAX,
        threshold_fraction: float = 0.3,
        refractory_samples: int = 6,
        min_peaks: int = 3,
    ) -> None:
        self.sampling_rate_hz = sampling_rate_hz
        self.min_samples = min_samples
        self.bpm_low = bpm_low
        self.bpm_high = bpm_high
        self.peak_detector = PeakDetector(
            sampling_rate_hz=sampling_rate_hz,
            threshold_fraction=threshold_fraction,
            refractory_samples=refractory_samples,
            min_peaks=min_peaks,
        )

    def estimate(
        self, values: Union[Sequence[float], np.ndarray]
    ) -> Union[EstimationResult, InsufficientData]:
        """Run the full pipeline over raw sample *values*."""
        n = len(values)
        if n < self.min_samples:
            logger.warning(
                "Insufficient data: %d samples collected, %d required.",
                n, self.min_samples,
            )
            return InsufficientData(sample_count=n, min_samples=self.min_samples)

        smoothed = conditioner.condition_signal(values)
        quality = classify_quality(n)

        detection = self.peak_detector.detect(smoothed)
        if not detection.enough_data:
            logger.warning(
                "Conditioned signal too short (%d samples); using default %d BPM.",
                len(smoothed), DEFAULT_BPM,
            )
            return self._result(DEFAULT_BPM, Method.INSUFFICIENT_DATA, Quality.LOW, 0, n)

        if detection.reliable:
            return self._result(
                detection.bpm, Method.PEAK_COUNT, quality, detection.peak_count, n
            )

        logger.info(
            "Only %d peaks found; falling back to autocorrelation.", detection.peak_count
        )
        periodic = estimate_from_periodicity(smoothed, self.sampling_rate_hz)
        if periodic.degenerate:
            quality = Quality.LOW
        return self._result(
            periodic.bpm, Method.PERIODICITY, quality, detection.peak_count, n
        )

    def _result(
        self,
        raw_bpm: int,
        method: Method,
        quality: Quality,
        peak_count: int,
        sample_count: int,
    ) -> EstimationResult:
        bpm = clamp_bpm(raw_bpm, self.bpm_low, self.bpm_high)
        if bpm != raw_bpm:
            logger.warning(
                "Unusual reading: %d BPM outside %d-%d; reporting %d.",
                raw_bpm, self.bpm_low, self.bpm_high, bpm,
            )
        result = EstimationResult(
            bpm=bpm,
            method=method,
            quality=quality,
            peak_count=peak_count,
            raw_bpm=raw_bpm,
            sample_count=sample_count,
        )
        logger.info(
            "Estimated %d BPM (method=%s quality=%s peaks=%d samples=%d)",
            bpm, method.value, quality.value, peak_count, sample_count,
        )
        return result
