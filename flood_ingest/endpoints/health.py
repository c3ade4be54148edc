"""Health and readiness endpoints."""

from __future__ import annotations

import logging
import time
from datetime import timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..common.timeutils import isoformat, utc_now
from ..container import ServiceContainer
from ..queries import count_readings_since, get_latest_timestamp
from .deps import get_container

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)

_STARTED = time.monotonic()


def _uptime_ms() -> int:
    return int((time.monotonic() - _STARTED) * 1000)


@router.get("")
def health():
    """Liveness probe - always ok if the process is running."""
    return {"ok": True, "timestamp": isoformat(utc_now())}


@router.get("/ready")
def ready(container: ServiceContainer = Depends(get_container)):
    """Readiness probe: almacén obligatorio, caché opcional (degraded)."""
    status = container.health.get_status()
    if not status.healthy:
        label = "unhealthy"
    elif status.degraded:
        label = "degraded"
    else:
        label = "healthy"

    body = {
        "status": label,
        "uptime": _uptime_ms(),
        "timestamp": isoformat(utc_now()),
        "services": status.to_dict(),
    }
    return JSONResponse(status_code=200 if status.healthy else 503, content=body)


@router.get("/detailed")
def detailed(container: ServiceContainer = Depends(get_container)):
    try:
        with container.engine.connect() as conn:
            latest = get_latest_timestamp(conn)
            last_hour = count_readings_since(conn, utc_now() - timedelta(hours=1))
        active_alerts = container.alerts.count_active()
        enabled_sensors = len(container.sensor_configs.list_enabled())
    except SQLAlchemyError:
        # No exponer detalles del error al cliente, solo loguear.
        logger.exception("[HEALTH] detailed check failed")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Health check failed", "code": "HEALTH_ERROR"},
        )

    return {
        "ok": True,
        "uptime": _uptime_ms(),
        "timestamp": isoformat(utc_now()),
        "data": {
            "latestReading": isoformat(latest),
            "readingsLastHour": last_hour,
            "activeAlerts": active_alerts,
            "enabledSensors": enabled_sensors,
        },
        "ingest": container.ingestion.stats.to_dict(),
        "alert_processor": container.processor.metrics,
    }
