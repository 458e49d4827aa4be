"""Temporal aggregation of detector output"""

from .aggregator import (
    TemporalEventAggregator,
    DetectionWindow,
    HysteresisTimer,
    ProxyEvent,
    MOBILE_DEVICE_DETECTED
)

__all__ = [
    "TemporalEventAggregator",
    "DetectionWindow",
    "HysteresisTimer",
    "ProxyEvent",
    "MOBILE_DEVICE_DETECTED"
]
