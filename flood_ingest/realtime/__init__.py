"""Canal de tiempo real (Socket.IO)."""

from .socketio import (
    ALERTS_ROOM,
    Broadcaster,
    SocketIOBroadcaster,
    broadcast_alert,
    broadcast_alert_acknowledged,
    broadcast_alert_resolved,
    broadcast_reading,
    create_combined_app,
    create_socket_server,
    sensor_room,
)

__all__ = [
    "ALERTS_ROOM",
    "Broadcaster",
    "SocketIOBroadcaster",
    "broadcast_alert",
    "broadcast_alert_acknowledged",
    "broadcast_alert_resolved",
    "broadcast_reading",
    "create_combined_app",
    "create_socket_server",
    "sensor_room",
]
