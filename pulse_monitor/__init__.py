"""
Pulse Monitor — fingertip camera PPG heart-rate core.
Cover the camera (torch on) with a fingertip; the session collects a
brightness sample stream for a fixed window and estimates BPM from it.
"""

from pulse_monitor.estimator import (
    BpmEstimator,
    EstimationResult,
    InsufficientData,
    Method,
    Quality,
)
from pulse_monitor.sample_buffer import Sample, SampleBuffer
from pulse_monitor.session import MeasurementSession, SessionConfig, SessionState

__version__ = "0.1.0"
__author__ = "pulse_monitor"

__all__ = [
    "BpmEstimator",
    "EstimationResult",
    "InsufficientData",
    "MeasurementSession",
    "Method",
    "Quality",
    "Sample",
    "SampleBuffer",
    "SessionConfig",
    "SessionState",
]
