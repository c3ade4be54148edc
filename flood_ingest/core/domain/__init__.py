"""Modelos de dominio del servicio."""

from .alert import Alert, AlertCandidate, AlertSeverity, AlertStatus, AlertType
from .reading import PayloadFormat, Reading, SignalInfo, SignalQuality, signal_quality_for
from .sensor_config import Location, SensorConfig, Thresholds

__all__ = [
    "Alert",
    "AlertCandidate",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "Location",
    "PayloadFormat",
    "Reading",
    "SensorConfig",
    "SignalInfo",
    "SignalQuality",
    "Thresholds",
    "signal_quality_for",
]
