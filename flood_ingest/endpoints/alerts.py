"""Consulta y gestión de alertas por operadores."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api_errors import ApiError
from ..auth import require_api_key
from ..container import ServiceContainer
from ..core.domain.alert import AlertStatus, AlertType
from ..errors import InvalidTransitionError
from ..realtime.socketio import broadcast_alert_acknowledged, broadcast_alert_resolved
from ..schemas import AcknowledgeIn
from .deps import get_container

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("")
def list_alerts(
    sensor_id: Optional[str] = None,
    status: Optional[AlertStatus] = None,
    type: Optional[AlertType] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    container: ServiceContainer = Depends(get_container),
):
    alerts = container.alerts.list_alerts(
        sensor_id=sensor_id, status=status, alert_type=type, limit=limit
    )
    return {"ok": True, "data": [a.to_dict() for a in alerts], "count": len(alerts)}


@router.get("/{alert_id}")
def get_alert(alert_id: str, container: ServiceContainer = Depends(get_container)):
    alert = container.alerts.get(alert_id)
    if alert is None:
        raise ApiError(404, "Alert not found", "NOT_FOUND", alert_id=alert_id)
    return {"ok": True, "data": alert.to_dict()}


@router.post("/{alert_id}/acknowledge", dependencies=[Depends(require_api_key)])
def acknowledge_alert(
    alert_id: str,
    body: AcknowledgeIn,
    container: ServiceContainer = Depends(get_container),
):
    try:
        alert = container.alerts.acknowledge(alert_id, body.user)
    except InvalidTransitionError as e:
        raise ApiError(409, str(e), "INVALID_TRANSITION")
    if alert is None:
        raise ApiError(404, "Alert not found", "NOT_FOUND", alert_id=alert_id)
    broadcast_alert_acknowledged(container.broadcaster, alert)
    return {"ok": True, "data": alert.to_dict()}


@router.post("/{alert_id}/resolve", dependencies=[Depends(require_api_key)])
def resolve_alert(alert_id: str, container: ServiceContainer = Depends(get_container)):
    try:
        alert = container.alerts.resolve(alert_id)
    except InvalidTransitionError as e:
        raise ApiError(409, str(e), "INVALID_TRANSITION")
    if alert is None:
        raise ApiError(404, "Alert not found", "NOT_FOUND", alert_id=alert_id)
    broadcast_alert_resolved(container.broadcaster, alert)
    return {"ok": True, "data": alert.to_dict()}
