from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Thresholds:
    """Umbrales de alerta de un sensor.

    Un umbral en None deshabilita solo la regla que lo usa.
    """

    water_level_critical: Optional[float] = None  # cm
    water_level_warning: Optional[float] = None  # cm
    rainfall_heavy: Optional[float] = None  # mm
    flow_excessive: Optional[float] = None  # L/min

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (
                self.water_level_critical,
                self.water_level_warning,
                self.rainfall_heavy,
                self.flow_excessive,
            )
        )

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "water_level_critical_cm": self.water_level_critical,
            "water_level_warning_cm": self.water_level_warning,
            "rainfall_heavy_mm": self.rainfall_heavy,
            "flow_excessive_lmin": self.flow_excessive,
        }


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class SensorConfig:
    """Configuración de un sensor (solo lectura para el pipeline de alertas)."""

    sensor_id: str
    enabled: bool = True
    thresholds: Thresholds = field(default_factory=Thresholds)
    name: Optional[str] = None
    location: Optional[Location] = None

    @property
    def can_alert(self) -> bool:
        return self.enabled and not self.thresholds.is_empty()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "name": self.name,
            "enabled": self.enabled,
            "thresholds": self.thresholds.to_dict(),
            "location": self.location.to_dict() if self.location else None,
        }
