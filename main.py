#!/usr/bin/env python3
"""
Pulse Monitor – headless session runner.

Drives one measurement session from a synthetic brightness source and
prints the estimated heart rate.  The camera and UI live elsewhere; this
runner exercises the same session/estimator code they would use.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --source NAME        synthetic (reference noisy signal) or sine
    --sine-hz FLOAT      Pulse frequency for the sine source (default: 1.2)
    --rate FLOAT         Sampling rate in Hz (default: 10)
    --duration FLOAT     Measuring window in seconds (default: 15)
    --delay FLOAT        Finger-detection delay in seconds (default: 2)
    --seed INT           Noise seed for the synthetic source
    --fast               Use a simulated clock instead of real time
    --verbose            Log every collected sample

Exit codes
----------
    0 – a BPM estimate was produced
    1 – invalid options
    2 – insufficient data (retry)
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Callable

from pulse_monitor.estimator import InsufficientData
from pulse_monitor.session import MeasurementSession, SessionConfig, SessionState
from pulse_monitor.sources import SineSource, SyntheticSource

logger = logging.getLogger("pulse_monitor")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fingertip camera heart-rate session (headless)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--source", choices=("synthetic", "sine"), default="synthetic",
                        help="Brightness source driving the session")
    parser.add_argument("--sine-hz", type=float, default=1.2,
                        help="Pulse frequency of the sine source")
    parser.add_argument("--rate", type=float, default=10.0,
                        help="Sampling rate in Hz")
    parser.add_argument("--duration", type=float, default=15.0,
                        help="Measuring window in seconds")
    parser.add_argument("--delay", type=float, default=2.0,
                        help="Fixed finger-detection delay in seconds")
    parser.add_argument("--seed", type=int, default=None,
                        help="Noise seed for the synthetic source")
    parser.add_argument("--fast", action="store_true",
                        help="Simulate the clock instead of sleeping")
    parser.add_argument("--verbose", action="store_true",
                        help="Log every collected sample")
    return parser.parse_args(argv)


class SimulatedClock:
    """Monotonic clock that only advances when :meth:`sleep` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    def sleep(self, seconds: float) -> None:
        self._now += seconds


# ---------------------------------------------------------------------------
# Session loop
# ---------------------------------------------------------------------------

def run_session(
    session: MeasurementSession,
    clock: Callable[[], float],
    sleep: Callable[[float], None],
) -> None:
    """Tick *session* at its sampling interval until it reaches a terminal state."""
    interval = session.config.sample_interval_s
    last_logged = None

    session.start()
    while not session.state.is_terminal:
        state = session.tick(clock())
        if state is SessionState.MEASURING:
            remaining = int(session.seconds_remaining(clock()))
            if remaining != last_logged:
                logger.info("%2ds remaining – %d samples", remaining, session.sample_count)
                last_logged = remaining
        if not state.is_terminal:
            sleep(interval)


def run(args: argparse.Namespace) -> int:
    try:
        config = SessionConfig(
            sampling_rate_hz=args.rate,
            required_duration_s=args.duration,
            finger_detect_delay_s=args.delay,
        )
        config.validate()
    except ValueError as exc:
        logger.error("Invalid session options: %s", exc)
        return 1

    if args.source == "sine":
        source = SineSource(frequency_hz=args.sine_hz)
    else:
        source = SyntheticSource(seed=args.seed)

    if args.fast:
        sim = SimulatedClock()
        clock, sleep = sim, sim.sleep
    else:
        clock, sleep = time.monotonic, time.sleep

    session = MeasurementSession(config=config, source=source, clock=clock)
    logger.info("Starting measurement.  Place finger on camera; Ctrl+C to cancel.")

    try:
        run_session(session, clock, sleep)
    except KeyboardInterrupt:
        session.cancel()
        logger.info("Interrupted.")
        return 130

    result = session.result
    if isinstance(result, InsufficientData):
        print(f"Insufficient data: only {result.sample_count} data points collected "
              f"(need {result.min_samples}).  Keep your finger steady and retry.")
        return 2

    note = "  (unusual reading, consider retrying)" if result.out_of_range else ""
    print(f"Heart rate: {result.bpm} BPM  method={result.method.value}  "
          f"quality={result.quality.value}  peaks={result.peak_count}  "
          f"samples={result.sample_count}{note}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
