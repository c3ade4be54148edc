"""Queries de lecturas.

Funciones puras de consulta a BD, sin lógica de negocio. Reciben una
conexión abierta; el llamador decide el alcance de la transacción.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from ..common.timeutils import as_utc, utc_now
from ..core.domain.reading import Reading
from ..infrastructure.persistence.tables import sensor_readings
from ..ingest.reading_repository import row_to_reading

_r = sensor_readings.c


def get_latest_reading(conn: Connection, sensor_id: str) -> Optional[Reading]:
    """Última lectura del sensor (por timestamp del dispositivo)."""
    row = conn.execute(
        select(sensor_readings)
        .where(_r.sensor_id == sensor_id)
        .order_by(_r.timestamp.desc())
        .limit(1)
    ).first()
    return row_to_reading(row) if row else None


def get_recent_readings(
    conn: Connection,
    sensor_id: str,
    since: datetime,
    limit: int,
) -> List[Reading]:
    """Lecturas con timestamp >= since, más recientes primero."""
    rows = conn.execute(
        select(sensor_readings)
        .where(_r.sensor_id == sensor_id, _r.timestamp >= since)
        .order_by(_r.timestamp.desc())
        .limit(limit)
    ).fetchall()
    return [row_to_reading(r) for r in rows]


def get_history(
    conn: Connection,
    sensor_id: str,
    hours: int = 24,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> List[Reading]:
    since = (now or utc_now()) - timedelta(hours=hours)
    return get_recent_readings(conn, sensor_id, since, limit)


def get_gateway_readings(conn: Connection, gateway_id: str, limit: int = 50) -> List[Reading]:
    rows = conn.execute(
        select(sensor_readings)
        .where(_r.gateway_id == gateway_id)
        .order_by(_r.timestamp.desc())
        .limit(limit)
    ).fetchall()
    return [row_to_reading(r) for r in rows]


def get_sensor_stats(
    conn: Connection,
    sensor_id: str,
    hours: int = 24,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Agregados del sensor en la ventana. None si no hay lecturas."""
    since = (now or utc_now()) - timedelta(hours=hours)
    row = conn.execute(
        select(
            func.count().label("count"),
            func.avg(_r.water_level).label("avg_water_level"),
            func.max(_r.water_level).label("max_water_level"),
            func.min(_r.water_level).label("min_water_level"),
            func.avg(_r.temperature).label("avg_temperature"),
            func.avg(_r.humidity).label("avg_humidity"),
            func.sum(_r.rainfall_accumulated).label("total_rain"),
            func.max(_r.flow_rate).label("max_flow"),
            func.avg(_r.battery).label("avg_battery"),
        ).where(_r.sensor_id == sensor_id, _r.timestamp >= since)
    ).first()

    stats = dict(row._mapping) if row is not None else {}
    if not stats.get("count"):
        return None

    stats["count"] = int(stats["count"])
    return {k: (float(v) if v is not None and k != "count" else v) for k, v in stats.items()}


def count_readings_since(conn: Connection, since: datetime) -> int:
    return int(
        conn.execute(
            select(func.count()).select_from(sensor_readings).where(_r.received_at >= since)
        ).scalar_one()
    )


def get_latest_timestamp(conn: Connection) -> Optional[datetime]:
    """Timestamp de la lectura más reciente de cualquier sensor."""
    value = conn.execute(select(func.max(_r.timestamp))).scalar()
    return as_utc(value)
