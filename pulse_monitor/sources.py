"""
Pollable brightness sources for driving a session without a camera.

Each source is a callable ``source(now) -> float`` where *now* is the
session clock time in seconds, matching
:data:`pulse_monitor.session.SampleSource`.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np


class SyntheticSource:
    """
    Reference test signal: ``150 + U(0, 1) * 50 + 20 * sin(t_ms / 100)``.

    The oscillating term has a period of about 0.63 s (roughly 95 BPM)
    buried under uniform noise of comparable amplitude.

    Parameters
    ----------
    seed:
        Seed for the noise generator; *None* for a fresh entropy source.
    baseline, noise_span, pulse_amplitude:
        Terms of the formula above.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        baseline: float = 150.0,
        noise_span: float = 50.0,
        pulse_amplitude: float = 20.0,
    ) -> None:
        self.baseline = baseline
        self.noise_span = noise_span
        self.pulse_amplitude = pulse_amplitude
        self._rng = np.random.default_rng(seed)

    def __call__(self, now: float) -> float:
        t_ms = now * 1000.0
        noise = float(self._rng.random()) * self.noise_span
        return self.baseline + noise + self.pulse_amplitude * math.sin(t_ms / 100.0)


class SineSource:
    """Clean sinusoidal pulse at *frequency_hz* on top of *baseline*."""

    def __init__(
        self,
        frequency_hz: float = 1.2,
        amplitude: float = 5.0,
        baseline: float = 170.0,
    ) -> None:
        self.frequency_hz = frequency_hz
        self.amplitude = amplitude
        self.baseline = baseline

    def __call__(self, now: float) -> float:
        return self.baseline + self.amplitude * math.sin(2 * math.pi * self.frequency_hz * now)
