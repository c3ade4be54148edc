"""Socket.IO para actualizaciones en tiempo real.

Salas:
- ``sensor:<sensor_id>``: lecturas y alertas de un sensor.
- ``alerts``: todas las alertas nuevas.

Los emisores corren en hilos de trabajo (endpoints síncronos y workers de
alertas); ``SocketIOBroadcaster`` los lleva al event loop del servidor ASGI.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import socketio

from ..common.timeutils import isoformat, utc_now
from ..core.domain.alert import Alert
from ..core.domain.reading import Reading

logger = logging.getLogger(__name__)

ALERTS_ROOM = "alerts"


def sensor_room(sensor_id: str) -> str:
    return f"sensor:{sensor_id}"


class Broadcaster(Protocol):
    def emit(self, event: str, data: Dict[str, Any], room: Optional[str] = None) -> None:
        ...


def create_socket_server(cors_origins: List[str]) -> socketio.AsyncServer:
    """Crea el servidor Socket.IO y registra los eventos de suscripción."""
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_origins,
        logger=False,
        engineio_logger=False,
    )

    @sio.event
    async def connect(sid, environ, auth=None):
        logger.debug("[WS] client connected sid=%s", sid)

    @sio.event
    async def disconnect(sid):
        logger.debug("[WS] client disconnected sid=%s", sid)

    @sio.on("subscribe:sensor")
    async def subscribe_sensor(sid, sensor_id):
        if not sensor_id:
            return {"error": "sensor_id required"}
        await sio.enter_room(sid, sensor_room(str(sensor_id)))
        logger.debug("[WS] sid=%s subscribed sensor=%s", sid, sensor_id)
        return {"status": "subscribed", "room": sensor_room(str(sensor_id))}

    @sio.on("unsubscribe:sensor")
    async def unsubscribe_sensor(sid, sensor_id):
        if not sensor_id:
            return {"error": "sensor_id required"}
        await sio.leave_room(sid, sensor_room(str(sensor_id)))
        return {"status": "unsubscribed", "room": sensor_room(str(sensor_id))}

    @sio.on("subscribe:alerts")
    async def subscribe_alerts(sid, data=None):
        await sio.enter_room(sid, ALERTS_ROOM)
        return {"status": "subscribed", "room": ALERTS_ROOM}

    return sio


def create_combined_app(sio: socketio.AsyncServer, fastapi_app: Any) -> Any:
    """Envuelve la app FastAPI con la app ASGI de Socket.IO."""
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)


class SocketIOBroadcaster:
    """Puente hilo -> event loop para ``AsyncServer.emit``.

    Hasta que el lifespan llama a ``bind_loop`` los eventos se descartan.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self._sio = sio
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        self._loop = loop

    def emit(self, event: str, data: Dict[str, Any], room: Optional[str] = None) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("[WS] no event loop bound, skip event=%s", event)
            return
        asyncio.run_coroutine_threadsafe(self._sio.emit(event, data, room=room), loop)


def broadcast_reading(broadcaster: Broadcaster, reading: Reading) -> None:
    """``sensor:data`` global y ``reading:update`` a la sala del sensor."""
    received_at = isoformat(reading.received_at)
    try:
        broadcaster.emit(
            "sensor:data",
            {
                "sensor_id": reading.sensor_id,
                "gateway_id": reading.gateway_id,
                "timestamp": received_at,
                "reading_id": reading.reading_id,
            },
        )
        broadcaster.emit(
            "reading:update",
            {
                "data": reading.to_dict(),
                "received_at": received_at,
                "reading_id": reading.reading_id,
            },
            room=sensor_room(reading.sensor_id),
        )
    except Exception as e:
        logger.warning("[WS] reading broadcast failed sensor_id=%s err=%s", reading.sensor_id, e)


def broadcast_alert(broadcaster: Broadcaster, alert: Alert) -> None:
    """``alert:new`` a la sala del sensor y a la sala global de alertas."""
    payload = {"alert": alert.to_dict(), "timestamp": isoformat(utc_now())}
    try:
        broadcaster.emit("alert:new", payload, room=sensor_room(alert.sensor_id))
        broadcaster.emit("alert:new", payload, room=ALERTS_ROOM)
    except Exception as e:
        logger.warning("[WS] alert broadcast failed alert_id=%s err=%s", alert.id, e)


def broadcast_alert_acknowledged(broadcaster: Broadcaster, alert: Alert) -> None:
    try:
        broadcaster.emit(
            "alert:acknowledged",
            {
                "alert_id": alert.id,
                "acknowledged_by": alert.acknowledged_by,
                "timestamp": isoformat(utc_now()),
            },
        )
    except Exception as e:
        logger.warning("[WS] acknowledge broadcast failed alert_id=%s err=%s", alert.id, e)


def broadcast_alert_resolved(broadcaster: Broadcaster, alert: Alert) -> None:
    try:
        broadcaster.emit("alert:resolved", {"alert_id": alert.id, "timestamp": isoformat(utc_now())})
    except Exception as e:
        logger.warning("[WS] resolve broadcast failed alert_id=%s err=%s", alert.id, e)
