"""Persistencia relacional."""

from .tables import alerts, ensure_schema, gateways, metadata, sensor_readings, sensors

__all__ = ["alerts", "ensure_schema", "gateways", "metadata", "sensor_readings", "sensors"]
