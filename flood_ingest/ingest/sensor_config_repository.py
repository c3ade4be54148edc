"""Repositorio de configuración de sensores (umbrales, estado, ubicación)."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from ..common.timeutils import utc_now
from ..core.domain.sensor_config import Location, SensorConfig, Thresholds
from ..infrastructure.persistence.tables import sensors

logger = logging.getLogger(__name__)


def _row_to_config(row) -> SensorConfig:
    location = None
    if row.lat is not None and row.lng is not None:
        location = Location(lat=row.lat, lng=row.lng)
    return SensorConfig(
        sensor_id=row.sensor_id,
        name=row.name,
        enabled=bool(row.enabled),
        thresholds=Thresholds(
            water_level_critical=row.water_level_critical,
            water_level_warning=row.water_level_warning,
            rainfall_heavy=row.rainfall_heavy,
            flow_excessive=row.flow_excessive,
        ),
        location=location,
    )


class SensorConfigRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    def get(self, sensor_id: str) -> Optional[SensorConfig]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(sensors).where(sensors.c.sensor_id == sensor_id)
            ).first()
        return _row_to_config(row) if row else None

    def list_enabled(self) -> List[SensorConfig]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(sensors).where(sensors.c.enabled.is_(True)).order_by(sensors.c.sensor_id)
            ).fetchall()
        return [_row_to_config(r) for r in rows]

    def upsert(self, config: SensorConfig) -> SensorConfig:
        """Crea o reemplaza la configuración completa del sensor."""
        t = config.thresholds
        values = {
            "name": config.name,
            "enabled": config.enabled,
            "water_level_critical": t.water_level_critical,
            "water_level_warning": t.water_level_warning,
            "rainfall_heavy": t.rainfall_heavy,
            "flow_excessive": t.flow_excessive,
            "lat": config.location.lat if config.location else None,
            "lng": config.location.lng if config.location else None,
            "updated_at": utc_now(),
        }
        with self._engine.begin() as conn:
            updated = conn.execute(
                update(sensors).where(sensors.c.sensor_id == config.sensor_id).values(**values)
            ).rowcount
            if not updated:
                conn.execute(insert(sensors).values(sensor_id=config.sensor_id, **values))

        logger.info(
            "[CONFIG] sensor_id=%s enabled=%s thresholds=%s",
            config.sensor_id, config.enabled, t.to_dict(),
        )
        return config
