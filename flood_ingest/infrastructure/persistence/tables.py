"""Esquema relacional del servicio (SQLAlchemy Core).

Tablas: sensor_readings, sensors, gateways, alerts. Las claves primarias
son uuid4 en hex; los instantes se guardan en UTC.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

sensor_readings = Table(
    "sensor_readings",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("sensor_id", String(64), nullable=False),
    Column("gateway_id", String(64), nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("received_at", DateTime(timezone=True), nullable=False),
    Column("water_level", Float, nullable=False),
    Column("rainfall_accumulated", Float, nullable=False),
    Column("flow_rate", Float, nullable=False),
    Column("temperature", Float, nullable=False),
    Column("humidity", Float, nullable=False),
    Column("battery", Float, nullable=True),
    Column("rssi", Float, nullable=True),
    Column("snr", Float, nullable=True),
    Column("signal_quality", String(16), nullable=True),
    Column("payload_format", String(16), nullable=False),
    Column("sequence", Integer, nullable=True),
    Index("ix_sensor_readings_sensor_ts", "sensor_id", "timestamp"),
    Index("ix_sensor_readings_gateway", "gateway_id"),
)

sensors = Table(
    "sensors",
    metadata,
    Column("sensor_id", String(64), primary_key=True),
    Column("name", String(128), nullable=True),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("water_level_critical", Float, nullable=True),
    Column("water_level_warning", Float, nullable=True),
    Column("rainfall_heavy", Float, nullable=True),
    Column("flow_excessive", Float, nullable=True),
    Column("lat", Float, nullable=True),
    Column("lng", Float, nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

gateways = Table(
    "gateways",
    metadata,
    Column("gateway_id", String(64), primary_key=True),
    Column("name", String(128), nullable=True),
    Column("lat", Float, nullable=True),
    Column("lng", Float, nullable=True),
    Column("status", String(16), nullable=False, default="online"),
    Column("last_seen", DateTime(timezone=True), nullable=True),
    Column("reading_count", Integer, nullable=False, default=0),
    Column("registered_at", DateTime(timezone=True), nullable=False),
)

alerts = Table(
    "alerts",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("sensor_id", String(64), nullable=False),
    Column("gateway_id", String(64), nullable=True),
    Column("type", String(32), nullable=False),
    Column("severity", String(16), nullable=False),
    Column("value", Float, nullable=False),
    Column("threshold", Float, nullable=False),
    Column("message", String(512), nullable=False),
    Column("detected_at", DateTime(timezone=True), nullable=False),
    Column("status", String(16), nullable=False),
    Column("acknowledged", Boolean, nullable=False, default=False),
    Column("acknowledged_at", DateTime(timezone=True), nullable=True),
    Column("acknowledged_by", String(128), nullable=True),
    Column("resolved_at", DateTime(timezone=True), nullable=True),
    Column("escalation_level", Integer, nullable=False, default=0),
    Column("superseded_by", String(32), nullable=True),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Index("ix_alerts_sensor_detected", "sensor_id", "detected_at"),
    Index("ix_alerts_status_detected", "status", "detected_at"),
    Index("ix_alerts_expires", "expires_at"),
)


def ensure_schema(engine: Engine) -> None:
    """Crea las tablas e índices que falten. Idempotente."""
    logger.info("[DB] Ensuring schema exists")
    metadata.create_all(engine)
