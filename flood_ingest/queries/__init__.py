"""Módulo de queries para consultas a BD.

Contiene funciones puras de consulta sin lógica de negocio.
"""

from .readings import (
    count_readings_since,
    get_latest_timestamp,
    get_gateway_readings,
    get_history,
    get_latest_reading,
    get_recent_readings,
    get_sensor_stats,
)

__all__ = [
    "count_readings_since",
    "get_latest_timestamp",
    "get_gateway_readings",
    "get_history",
    "get_latest_reading",
    "get_recent_readings",
    "get_sensor_stats",
]
