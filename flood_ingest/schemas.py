from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .core.domain.sensor_config import Location, SensorConfig, Thresholds


class LocationIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(lat=self.lat, lng=self.lng)


class ThresholdsIn(BaseModel):
    water_level_critical_cm: Optional[float] = Field(default=None, ge=0)
    water_level_warning_cm: Optional[float] = Field(default=None, ge=0)
    rainfall_heavy_mm: Optional[float] = Field(default=None, ge=0)
    flow_excessive_lmin: Optional[float] = Field(default=None, ge=0)

    def to_domain(self) -> Thresholds:
        return Thresholds(
            water_level_critical=self.water_level_critical_cm,
            water_level_warning=self.water_level_warning_cm,
            rainfall_heavy=self.rainfall_heavy_mm,
            flow_excessive=self.flow_excessive_lmin,
        )


class SensorConfigIn(BaseModel):
    name: Optional[str] = None
    enabled: bool = True
    thresholds: ThresholdsIn = Field(default_factory=ThresholdsIn)
    location: Optional[LocationIn] = None

    def to_domain(self, sensor_id: str) -> SensorConfig:
        return SensorConfig(
            sensor_id=sensor_id,
            name=self.name,
            enabled=self.enabled,
            thresholds=self.thresholds.to_domain(),
            location=self.location.to_domain() if self.location else None,
        )


class GatewayRegisterIn(BaseModel):
    gateway_id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = None
    location: Optional[LocationIn] = None


class AcknowledgeIn(BaseModel):
    user: str = Field(..., min_length=1, max_length=128)


class IngestAccepted(BaseModel):
    ok: bool = True
    received_at: str
    reading_id: str


class IngestDuplicate(BaseModel):
    ok: bool = True
    message: str = "Duplicate reading, skipped"
    deduplicated: bool = True
    received_at: str
