"""Consultas de lecturas y gateways para dashboards."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..api_errors import ApiError
from ..auth import require_api_key
from ..container import ServiceContainer
from ..queries import get_gateway_readings, get_history, get_latest_reading, get_sensor_stats
from ..schemas import GatewayRegisterIn
from .deps import get_container

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/status/{sensor_id}")
def sensor_status(sensor_id: str, container: ServiceContainer = Depends(get_container)):
    """Última lectura del sensor."""
    with container.engine.connect() as conn:
        reading = get_latest_reading(conn, sensor_id)
    if reading is None:
        raise ApiError(404, "No data found for sensor", "NOT_FOUND", sensor_id=sensor_id)
    return {"ok": True, "data": reading.to_dict()}


@router.get("/history/{sensor_id}")
def sensor_history(
    sensor_id: str,
    hours: int = Query(default=24, ge=1, le=24 * 90),
    limit: int = Query(default=100, ge=1, le=1000),
    container: ServiceContainer = Depends(get_container),
):
    with container.engine.connect() as conn:
        readings = get_history(conn, sensor_id, hours=hours, limit=limit)
    return {
        "ok": True,
        "data": [r.to_dict() for r in readings],
        "count": len(readings),
        "sensor_id": sensor_id,
    }


@router.get("/stats/{sensor_id}")
def sensor_stats(
    sensor_id: str,
    hours: int = Query(default=24, ge=1, le=24 * 90),
    container: ServiceContainer = Depends(get_container),
):
    with container.engine.connect() as conn:
        stats = get_sensor_stats(conn, sensor_id, hours=hours)
    if stats is None:
        raise ApiError(404, "No statistics available", "NOT_FOUND", sensor_id=sensor_id)
    return {"ok": True, "sensor_id": sensor_id, "hours": hours, "stats": stats}


@router.get("/gateways")
def list_gateways(container: ServiceContainer = Depends(get_container)):
    gateways = container.gateways.list_all()
    return {"ok": True, "gateways": [g.to_dict() for g in gateways], "count": len(gateways)}


@router.post("/gateway/register", status_code=201, dependencies=[Depends(require_api_key)])
def register_gateway(body: GatewayRegisterIn, container: ServiceContainer = Depends(get_container)):
    gateway = container.gateways.register(
        body.gateway_id,
        name=body.name,
        location=body.location.to_domain() if body.location else None,
    )
    return {
        "ok": True,
        "message": "Gateway registered successfully",
        "gateway_id": gateway.gateway_id,
        "data": gateway.to_dict(),
    }


@router.get("/gateway/{gateway_id}/info")
def gateway_info(gateway_id: str, container: ServiceContainer = Depends(get_container)):
    gateway = container.gateways.get(gateway_id)
    if gateway is None:
        raise ApiError(404, "Gateway not found", "NOT_FOUND", gateway_id=gateway_id)
    return {"ok": True, "data": gateway.to_dict()}


@router.get("/gateway/{gateway_id}")
def gateway_readings(gateway_id: str, container: ServiceContainer = Depends(get_container)):
    """Últimas lecturas recibidas a través del gateway."""
    with container.engine.connect() as conn:
        readings = get_gateway_readings(conn, gateway_id, limit=50)
    return {
        "ok": True,
        "gateway_id": gateway_id,
        "readings_count": len(readings),
        "data": [r.to_dict() for r in readings],
    }
