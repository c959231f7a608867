"""
Measurement session state machine.

Lifecycle::

    IDLE -> AWAITING_FINGER -> MEASURING -> COMPUTING -> COMPLETE
    (any active state) --cancel()--> ABORTED

The session does not own a thread.  The caller drives it by calling
:meth:`MeasurementSession.tick` from its own loop (ideally at least once
per sample interval).  Finger detection is a fixed delay: the incoming
signal is not inspected to decide whether a finger is present.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from pulse_monitor.estimator import BpmEstimator, EstimationResult, InsufficientData
from pulse_monitor.sample_buffer import Sample, SampleBuffer

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
#: Polled once per sample interval with the current clock time.
SampleSource = Callable[[float], float]
SessionOutcome = Union[EstimationResult, InsufficientData]

# Tolerance for float clock comparisons.
_EPS = 1e-9


class SessionState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_FINGER = "awaiting_finger"
    MEASURING = "measuring"
    COMPUTING = "computing"
    COMPLETE = "complete"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETE, SessionState.ABORTED)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal and self is not SessionState.IDLE


@dataclass(frozen=True)
class SessionConfig:
    """
    Timing parameters of a measurement.

    Parameters
    ----------
    sampling_rate_hz:
        Nominal sample cadence while measuring (default 10 Hz).
    required_duration_s:
        Length of the measuring window (default 15 s).
    finger_detect_delay_s:
        Fixed wait between :meth:`MeasurementSession.start` and the
        beginning of measurement (default 2 s).
    """

    sampling_rate_hz: float = 10.0
    required_duration_s: float = 15.0
    finger_detect_delay_s: float = 2.0

    def validate(self) -> None:
        if self.sampling_rate_hz <= 0:
            raise ValueError(f"sampling_rate_hz must be positive, got {self.sampling_rate_hz}")
        if self.required_duration_s <= 0:
            raise ValueError(
                f"required_duration_s must be positive, got {self.required_duration_s}"
            )
        if self.finger_detect_delay_s < 0:
            raise ValueError(
                f"finger_detect_delay_s must be >= 0, got {self.finger_detect_delay_s}"
            )

    @property
    def sample_interval_s(self) -> float:
        return 1.0 / self.sampling_rate_hz


class MeasurementSession:
    """
    One heart-rate measurement at a time.

    Parameters
    ----------
    config:
        Timing parameters; see :class:`SessionConfig`.
    source:
        Optional callable polled for a brightness value whenever a sample
        is due.  Without one, samples must be supplied through
        :meth:`push_sample`.
    estimator:
        Pipeline run on completion.  Defaults to a :class:`BpmEstimator`
        at the configured sampling rate.
    clock:
        Monotonic time source in seconds (default :func:`time.monotonic`).
    on_complete:
        Called once with the outcome when a session completes.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        source: Optional[SampleSource] = None,
        estimator: BpmEstimator | None = None,
        clock: Clock = time.monotonic,
        on_complete: Optional[Callable[[SessionOutcome], None]] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.config.validate()
        self.source = source
        self.estimator = estimator or BpmEstimator(
            sampling_rate_hz=self.config.sampling_rate_hz
        )
        self._clock = clock
        self._on_complete = on_complete

        self.buffer = SampleBuffer()
        self._state = SessionState.IDLE
        self._started_at: Optional[float] = None
        self._measuring_since: Optional[float] = None
        self._next_sample_at: Optional[float] = None
        self._result: Optional[SessionOutcome] = None

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a new measurement, aborting any one in progress."""
        if self._state.is_active:
            logger.info("Restart requested while %s; aborting current session.", self._state.value)
            self.cancel()

        self.buffer.clear()
        self._result = None
        self._measuring_since = None
        self._next_sample_at = None
        self._started_at = self._clock()
        self._set_state(SessionState.AWAITING_FINGER)

    def cancel(self) -> None:
        """Abort the current measurement.  Collected samples are dropped."""
        if not self._state.is_active:
            return
        self.buffer.clear()
        self._result = None
        self._next_sample_at = None
        self._set_state(SessionState.ABORTED)

    def tick(self, now: Optional[float] = None) -> SessionState:
        """
        Advance the state machine to time *now* (clock time if omitted).

        Ingests at most one sample from :attr:`source` per call.  Late ticks
        record their actual timestamp.
        """
        if now is None:
            now = self._clock()

        if self._state is SessionState.AWAITING_FINGER:
            if now - self._started_at >= self.config.finger_detect_delay_s - _EPS:
                self._measuring_since = now
                self._next_sample_at = now
                self._set_state(SessionState.MEASURING)

        if self._state is SessionState.MEASURING:
            if now - self._measuring_since >= self.config.required_duration_s - _EPS:
                self._set_state(SessionState.COMPUTING)
                self._compute()
            elif self.source is not None and now >= self._next_sample_at - _EPS:
                self._ingest(Sample(now, float(self.source(now))))
                # Schedule from the ideal grid, but never in the past.
                self._next_sample_at = max(
                    self._next_sample_at + self.config.sample_interval_s, now
                )

        return self._state

    def push_sample(self, sample: Sample) -> bool:
        """
        Feed a sample from an external capture callback.

        Samples are only accepted while measuring and only if they fall
        inside the measuring window; the window closes on the next tick.
        """
        if self._state is not SessionState.MEASURING:
            logger.debug("Ignoring sample while %s.", self._state.value)
            return False
        window_end = self._measuring_since + self.config.required_duration_s
        if sample.timestamp >= window_end - _EPS:
            logger.debug(
                "Ignoring sample at t=%.4f past window end t=%.4f.",
                sample.timestamp, window_end,
            )
            return False
        return self._ingest(sample)

    # ------------------------------------------------------------------
    # Progress / results
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def result(self) -> Optional[SessionOutcome]:
        return self._result

    @property
    def sample_count(self) -> int:
        return len(self.buffer)

    def seconds_remaining(self, now: Optional[float] = None) -> float:
        """Countdown of the measuring window (full duration before it starts)."""
        if self._state in (SessionState.COMPUTING, SessionState.COMPLETE):
            return 0.0
        if self._state is not SessionState.MEASURING:
            return self.config.required_duration_s
        if now is None:
            now = self._clock()
        elapsed = now - self._measuring_since
        return max(0.0, self.config.required_duration_s - elapsed)

    def progress(self, now: Optional[float] = None) -> float:
        """Fraction (0 – 1) of the measuring window already elapsed."""
        remaining = self.seconds_remaining(now)
        return 1.0 - remaining / self.config.required_duration_s

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ingest(self, sample: Sample) -> bool:
        accepted = self.buffer.append(sample)
        if accepted:
            logger.debug("Data points collected: %d", len(self.buffer))
        return accepted

    def _compute(self) -> None:
        values = self.buffer.values()
        outcome = self.estimator.estimate(values)
        self._result = outcome
        self._set_state(SessionState.COMPLETE)
        if self._on_complete is not None:
            self._on_complete(outcome)

    def _set_state(self, state: SessionState) -> None:
        logger.info(
            "Session %s -> %s (samples=%d)",
            self._state.value, state.value, len(self.buffer),
        )
        self._state = state
