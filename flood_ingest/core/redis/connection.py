"""Conexión a Redis."""

from __future__ import annotations

import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)


class RedisConnection:
    """Gestiona la conexión a Redis.

    El servicio arranca aunque Redis no responda: la caché efímera es
    opcional y todos sus consumidores degradan a la base de datos.
    """

    def __init__(self, url: str, timeout_seconds: float = 2.0):
        self._url = url
        self._timeout = timeout_seconds
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def client(self) -> Optional[redis.Redis]:
        return self._client

    def connect(self) -> bool:
        """Crea el cliente y prueba con PING. Devuelve True si Redis respondió."""
        self._client = redis.Redis.from_url(
            self._url,
            decode_responses=True,
            socket_timeout=self._timeout,
            socket_connect_timeout=self._timeout,
        )
        try:
            self._client.ping()
            self._connected = True
            logger.info("[REDIS] Connected: %s", self._url.split("@")[-1])
        except (redis.RedisError, OSError) as e:
            self._connected = False
            logger.warning("[REDIS] Connection failed (degradado a BD): %s", e)
        return self._connected

    def disconnect(self) -> None:
        """Desconecta de Redis."""
        if self._client is not None:
            try:
                self._client.close()
            except (redis.RedisError, OSError) as e:
                logger.debug("[REDIS] close error: %s", e)
        self._connected = False
