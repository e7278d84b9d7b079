"""Receiving-host side: line folding, two local rate estimates and the mismatch flag."""

from .estimators import (
    BeatEdgeTracker,
    BeatWindowEstimator,
    IntervalEstimator,
    MismatchMonitor,
    RateEstimate,
    RateSource,
)
from .runner import MonitorHost, MonitorReaderThread, SerialSettings
from .state import ConsumerContext, ConsumerSnapshot, replay

__all__ = [
    "BeatEdgeTracker",
    "BeatWindowEstimator",
    "ConsumerContext",
    "ConsumerSnapshot",
    "IntervalEstimator",
    "MismatchMonitor",
    "MonitorHost",
    "MonitorReaderThread",
    "RateEstimate",
    "RateSource",
    "SerialSettings",
    "replay",
]
