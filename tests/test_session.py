"""
Unit tests for MeasurementSession and the headless runner.
Run with:  pytest tests/test_session.py
"""

from __future__ import annotations

import pytest

import main
from pulse_monitor.estimator import EstimationResult, InsufficientData, Method, Quality
from pulse_monitor.sample_buffer import Sample
from pulse_monitor.session import MeasurementSession, SessionConfig, SessionState
from pulse_monitor.sources import SineSource


def _drive(session: MeasurementSession, clock, start_step: int = 0, max_steps: int = 1000) -> int:
    """Tick *session* every 0.1 s of fake time until it is terminal."""
    step = start_step
    while not session.state.is_terminal and step < start_step + max_steps:
        clock.now = step / 10.0
        session.tick()
        step += 1
    return step


class TestSessionConfig:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sampling_rate_hz": 0.0},
            {"required_duration_s": -1.0},
            {"finger_detect_delay_s": -0.5},
        ],
    )
    def test_invalid_config_rejected(self, kwargs):
        with pytest.raises(ValueError):
            MeasurementSession(config=SessionConfig(**kwargs))

    def test_defaults(self):
        cfg = SessionConfig()
        assert cfg.sampling_rate_hz == 10.0
        assert cfg.required_duration_s == 15.0
        assert cfg.finger_detect_delay_s == 2.0
        assert cfg.sample_interval_s == pytest.approx(0.1)


class TestMeasurementSession:

    def test_initial_state(self, clock):
        session = MeasurementSession(clock=clock)
        assert session.state is SessionState.IDLE
        assert session.result is None
        assert session.sample_count == 0

    def test_start_waits_for_finger_delay(self, clock):
        clock.now = 5.0
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        assert session.state is SessionState.AWAITING_FINGER
        assert session.started_at == 5.0

        assert session.tick(6.9) is SessionState.AWAITING_FINGER
        assert session.sample_count == 0
        assert session.tick(7.0) is SessionState.MEASURING
        assert session.sample_count == 1

    def test_full_session_completes(self, clock):
        outcomes = []
        session = MeasurementSession(
            source=SineSource(frequency_hz=1.2), clock=clock, on_complete=outcomes.append
        )
        session.start()
        _drive(session, clock)

        assert session.state is SessionState.COMPLETE
        assert session.sample_count == 150
        result = session.result
        assert isinstance(result, EstimationResult)
        assert result.method is Method.PEAK_COUNT
        assert result.quality is Quality.HIGH
        assert abs(result.bpm - 72) <= 5
        assert outcomes == [result]

    def test_samples_are_monotonic(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        _drive(session, clock)
        ts = session.buffer.timestamps()
        assert (ts[1:] >= ts[:-1]).all()
        assert session.buffer.rejected_count == 0

    def test_late_tick_keeps_actual_timestamp(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        session.tick(2.0)
        session.tick(2.13)
        session.tick(2.2)
        assert list(session.buffer.timestamps()) == [2.0, 2.13, 2.2]

    def test_fast_ticks_do_not_oversample(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        session.tick(2.0)
        session.tick(2.05)
        assert session.sample_count == 1

    def test_insufficient_data(self, clock):
        outcomes = []
        config = SessionConfig(required_duration_s=1.0)
        session = MeasurementSession(
            config=config, source=SineSource(), clock=clock, on_complete=outcomes.append
        )
        session.start()
        _drive(session, clock)
        assert session.state is SessionState.COMPLETE
        assert session.result == InsufficientData(sample_count=10)
        assert outcomes == [session.result]

    def test_cancel_discards_samples(self, clock):
        outcomes = []
        session = MeasurementSession(
            source=SineSource(), clock=clock, on_complete=outcomes.append
        )
        session.start()
        for step in range(20, 60):
            session.tick(step / 10.0)
        assert session.sample_count > 0

        session.cancel()
        assert session.state is SessionState.ABORTED
        assert session.sample_count == 0
        assert session.result is None

        session.tick(100.0)
        assert session.state is SessionState.ABORTED
        assert session.result is None
        assert outcomes == []

    def test_cancel_when_idle_is_noop(self, clock):
        session = MeasurementSession(clock=clock)
        session.cancel()
        assert session.state is SessionState.IDLE

    def test_cancel_after_complete_keeps_result(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        _drive(session, clock)
        result = session.result
        session.cancel()
        assert session.state is SessionState.COMPLETE
        assert session.result is result

    def test_start_while_active_restarts(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        for step in range(20, 40):
            session.tick(step / 10.0)
        assert session.state is SessionState.MEASURING

        clock.now = 10.0
        session.start()
        assert session.state is SessionState.AWAITING_FINGER
        assert session.sample_count == 0
        assert session.started_at == 10.0

    def test_retry_after_complete(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        session.start()
        step = _drive(session, clock)
        assert session.result is not None

        session.start()
        assert session.result is None
        assert session.sample_count == 0
        _drive(session, clock, start_step=step)
        assert isinstance(session.result, EstimationResult)
        assert session.sample_count == 150

    def test_push_sample_only_while_measuring(self, clock):
        session = MeasurementSession(clock=clock)
        assert session.push_sample(Sample(0.0, 150.0)) is False
        session.start()
        assert session.push_sample(Sample(0.5, 150.0)) is False

        session.tick(2.0)
        assert session.state is SessionState.MEASURING
        assert session.push_sample(Sample(2.0, 150.0))
        assert session.push_sample(Sample(2.1, 155.0))
        assert session.push_sample(Sample(2.05, 155.0)) is False
        assert session.sample_count == 2
        assert session.buffer.rejected_count == 1

    def test_push_sample_past_window_end_rejected(self, clock):
        session = MeasurementSession(clock=clock)
        session.start()
        session.tick(2.0)
        assert session.push_sample(Sample(16.9, 150.0))
        # Window is [2.0, 17.0); the closing tick has not happened yet.
        assert session.push_sample(Sample(17.0, 150.0)) is False
        assert session.push_sample(Sample(18.5, 150.0)) is False
        assert session.state is SessionState.MEASURING
        assert session.sample_count == 1
        assert session.buffer.rejected_count == 0

    def test_pushed_samples_are_estimated(self, clock):
        session = MeasurementSession(clock=clock)
        source = SineSource(frequency_hz=1.2)
        session.start()
        for step in range(20, 170):
            t = step / 10.0
            session.tick(t)
            session.push_sample(Sample(t, source(t)))
        session.tick(17.0)
        assert session.state is SessionState.COMPLETE
        assert session.result.sample_count == 150

    def test_seconds_remaining(self, clock):
        session = MeasurementSession(source=SineSource(), clock=clock)
        assert session.seconds_remaining() == 15.0
        session.start()
        session.tick(2.0)
        assert session.seconds_remaining(7.0) == pytest.approx(10.0)
        assert session.progress(7.0) == pytest.approx(1.0 / 3.0)
        _drive(session, clock, start_step=21)
        assert session.seconds_remaining() == 0.0
        assert session.progress() == 1.0


class TestCli:

    def test_fast_run_reports_bpm(self, capsys):
        assert main.main(["--fast", "--seed", "3"]) == 0
        out = capsys.readouterr().out
        assert "Heart rate:" in out
        assert "quality=high" in out

    def test_sine_source(self, capsys):
        assert main.main(["--fast", "--source", "sine", "--sine-hz", "1.2"]) == 0
        assert "method=peak_count" in capsys.readouterr().out

    def test_short_run_is_insufficient(self, capsys):
        assert main.main(["--fast", "--duration", "1"]) == 2
        assert "Insufficient data" in capsys.readouterr().out

    def test_invalid_rate(self):
        assert main.main(["--fast", "--rate", "0"]) == 1
