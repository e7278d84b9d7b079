"""
Sampling-device side of the link: two cadences off one clock, adaptive
thresholds, beat detection, contact classification and line encoding.

Everything mutable lives in a ProducerContext so several pipelines can run
side by side (and deterministically under a VirtualClock in tests).
"""

from .cardiac import BaselineTracker, BeatDetector, BeatEvent, CardiacChannel, DetectorState
from .conductance import ConductanceReading, ContactClassifier, Oversampler
from .device import AnalogSource, ProducerContext, ProducerDevice
from .scheduler import Channel, Sample, SamplingScheduler
from .synthetic import SyntheticSource, VirtualClock

__all__ = [
    "AnalogSource",
    "BaselineTracker",
    "BeatDetector",
    "BeatEvent",
    "CardiacChannel",
    "Channel",
    "ConductanceReading",
    "ContactClassifier",
    "DetectorState",
    "Oversampler",
    "ProducerContext",
    "ProducerDevice",
    "Sample",
    "SamplingScheduler",
    "SyntheticSource",
    "VirtualClock",
]
