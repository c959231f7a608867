"""
Append-only store of raw brightness samples for one measurement session.

Samples must arrive in timestamp order.  An out-of-order sample is a logic
error in the caller: it is rejected and counted, never reordered.
"""

from __future__ import annotations

import logging
import math
from typing import Iterator, List, NamedTuple, Optional

import numpy as np

logger = logging.getLogger(__name__)


class Sample(NamedTuple):
    """One brightness reading taken at monotonic time *timestamp* (seconds)."""

    timestamp: float
    value: float


class SampleBuffer:
    """
    Time-ordered sample store.

    There is no capacity limit; the owning session bounds the capture
    duration, which bounds the sample count.
    """

    def __init__(self) -> None:
        self._samples: List[Sample] = []
        self._rejected: int = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, sample: Sample) -> bool:
        """
        Store *sample* if its timestamp is finite and not earlier than the
        last one.

        Returns
        -------
        bool
            *True* when stored, *False* when rejected.
        """
        if not math.isfinite(sample.timestamp):
            self._rejected += 1
            logger.warning(
                "Rejected sample with non-finite timestamp %r (rejected=%d)",
                sample.timestamp, self._rejected,
            )
            return False
        last = self.last_timestamp
        if last is not None and sample.timestamp < last:
            self._rejected += 1
            logger.warning(
                "Rejected out-of-order sample: t=%.4f < last t=%.4f (rejected=%d)",
                sample.timestamp, last, self._rejected,
            )
            return False
        self._samples.append(sample)
        return True

    def clear(self) -> None:
        """Drop every sample and reset the anomaly counter."""
        self._samples.clear()
        self._rejected = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def length(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    @property
    def rejected_count(self) -> int:
        """Number of samples rejected since the last :meth:`clear`."""
        return self._rejected

    @property
    def last_timestamp(self) -> Optional[float]:
        if not self._samples:
            return None
        return self._samples[-1].timestamp

    @property
    def duration_s(self) -> float:
        """Time span between the first and last stored sample."""
        if len(self._samples) < 2:
            return 0.0
        return self._samples[-1].timestamp - self._samples[0].timestamp

    def values(self) -> np.ndarray:
        """Return the sample values as a fresh float64 array."""
        return np.array([s.value for s in self._samples], dtype=np.float64)

    def timestamps(self) -> np.ndarray:
        return np.array([s.timestamp for s in self._samples], dtype=np.float64)
