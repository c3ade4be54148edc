"""Configuración de sensores (umbrales, estado, ubicación)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..api_errors import ApiError
from ..auth import require_admin_key
from ..container import ServiceContainer
from ..schemas import SensorConfigIn
from .deps import get_container

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/sensors")
def list_sensors(container: ServiceContainer = Depends(get_container)):
    """Sensores habilitados."""
    configs = container.sensor_configs.list_enabled()
    return {"ok": True, "data": [c.to_dict() for c in configs], "count": len(configs)}


@router.get("/sensors/{sensor_id}")
def get_sensor(sensor_id: str, container: ServiceContainer = Depends(get_container)):
    config = container.sensor_configs.get(sensor_id)
    if config is None:
        raise ApiError(404, "Sensor not found", "NOT_FOUND", sensor_id=sensor_id)
    return {"ok": True, "data": config.to_dict()}


@router.put("/sensors/{sensor_id}", dependencies=[Depends(require_admin_key)])
def put_sensor(
    sensor_id: str,
    body: SensorConfigIn,
    container: ServiceContainer = Depends(get_container),
):
    """Crea o reemplaza la configuración del sensor."""
    config = container.sensor_configs.upsert(body.to_domain(sensor_id))
    return {"ok": True, "data": config.to_dict(), "message": "Sensor configuration updated"}


@router.get("/thresholds/{sensor_id}")
def get_thresholds(sensor_id: str, container: ServiceContainer = Depends(get_container)):
    config = container.sensor_configs.get(sensor_id)
    if config is None:
        raise ApiError(404, "Sensor not found", "NOT_FOUND", sensor_id=sensor_id)
    return {"ok": True, "sensor_id": sensor_id, "thresholds": config.thresholds.to_dict()}
