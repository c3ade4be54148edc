"""Caché efímera sobre Redis con degradación silenciosa.

Todas las operaciones capturan errores de Redis: un fallo de la caché
nunca se propaga al pipeline de ingesta, solo se registra en el log.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)

_CACHE_ERRORS = (redis.RedisError, OSError)


class EphemeralCache:
    """Operaciones clave/valor con TTL usadas por dedup, supresión de
    alertas, idempotencia y rate limiting.

    Si ``client`` es None la caché queda deshabilitada y cada operación
    devuelve su valor de fallback.
    """

    def __init__(self, client: Optional[redis.Redis]):
        self._client = client

    def get(self, key: str, default: Any = None) -> Any:
        if self._client is None:
            return default
        try:
            value = self._client.get(key)
        except _CACHE_ERRORS as e:
            logger.warning("[CACHE] get error key=%s err=%s", key, e)
            return default
        return default if value is None else value

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool:
        if self._client is None:
            return False
        try:
            self._client.set(key, value, ex=int(ttl_seconds))
            return True
        except _CACHE_ERRORS as e:
            logger.warning("[CACHE] set error key=%s err=%s", key, e)
            return False

    def set_if_absent(
        self,
        key: str,
        value: str,
        ttl_seconds: int,
        on_error: bool = True,
    ) -> bool:
        """SET NX EX atómico.

        Devuelve True si la clave se creó, False si ya existía. Ante error
        (o caché deshabilitada) devuelve ``on_error``.
        """
        if self._client is None:
            return on_error
        try:
            result = self._client.set(key, value, nx=True, ex=int(ttl_seconds))
        except _CACHE_ERRORS as e:
            logger.warning("[CACHE] set_if_absent error key=%s err=%s", key, e)
            return on_error
        return bool(result)

    def incr_with_ttl(self, key: str, ttl_seconds: int) -> Optional[int]:
        """INCR de un contador; la primera unidad fija EXPIRE ``ttl_seconds``.

        Devuelve None ante error o caché deshabilitada.
        """
        if self._client is None:
            return None
        try:
            count = int(self._client.incr(key))
            if count == 1:
                self._client.expire(key, int(ttl_seconds))
        except _CACHE_ERRORS as e:
            logger.warning("[CACHE] incr error key=%s err=%s", key, e)
            return None
        return count

    def delete(self, key: str) -> None:
        if self._client is None:
            return
        try:
            self._client.delete(key)
        except _CACHE_ERRORS as e:
            logger.warning("[CACHE] delete error key=%s err=%s", key, e)

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except _CACHE_ERRORS as e:
            logger.debug("[CACHE] ping error: %s", e)
            return False
