"""Lectura canónica de sensor."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ...common.timeutils import isoformat, to_epoch_ms


class PayloadFormat(str, Enum):
    """Formato de cable del payload del gateway."""
    TTGO = "ttgo"
    LEGACY = "legacy"


class SignalQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def signal_quality_for(rssi: Optional[float]) -> Optional[SignalQuality]:
    """Bucket de calidad del enlace LoRa a partir del RSSI (dBm)."""
    if rssi is None:
        return None
    if rssi >= -80:
        return SignalQuality.EXCELLENT
    if rssi >= -100:
        return SignalQuality.GOOD
    if rssi >= -120:
        return SignalQuality.FAIR
    return SignalQuality.POOR


@dataclass(frozen=True)
class SignalInfo:
    rssi: Optional[float] = None
    snr: Optional[float] = None
    quality: Optional[SignalQuality] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rssi": self.rssi,
            "snr": self.snr,
            "quality": self.quality.value if self.quality else None,
        }


@dataclass(frozen=True)
class Reading:
    """Observación canónica de un sensor.

    Se crea una sola vez en la ingesta y es inmutable: nunca se actualiza,
    solo la reemplazan lecturas posteriores del mismo sensor.

    Unidades: water_level en cm, rainfall_accumulated en mm, flow_rate en
    L/min, temperature en °C, humidity y battery en %.
    """

    sensor_id: str
    timestamp: datetime
    water_level: float
    rainfall_accumulated: float
    flow_rate: float
    temperature: float
    humidity: float
    battery: Optional[float] = None
    gateway_id: Optional[str] = None
    signal: Optional[SignalInfo] = None
    received_at: Optional[datetime] = None
    payload_format: PayloadFormat = PayloadFormat.LEGACY
    sequence: Optional[int] = None
    reading_id: Optional[str] = None

    @property
    def timestamp_ms(self) -> int:
        return to_epoch_ms(self.timestamp)

    def with_id(self, reading_id: str, received_at: datetime) -> "Reading":
        return replace(self, reading_id=reading_id, received_at=received_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading_id": self.reading_id,
            "sensor_id": self.sensor_id,
            "gateway_id": self.gateway_id,
            "timestamp": isoformat(self.timestamp),
            "water_level_cm": self.water_level,
            "rain_accumulated_mm": self.rainfall_accumulated,
            "flow_rate_lmin": self.flow_rate,
            "temperature_c": self.temperature,
            "humidity_percent": self.humidity,
            "battery_percent": self.battery,
            "signal": self.signal.to_dict() if self.signal else None,
            "payload_format": self.payload_format.value,
            "sequence": self.sequence,
            "received_at": isoformat(self.received_at),
        }
