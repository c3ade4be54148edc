"""Caché de respuestas por ``X-Idempotency-Key``."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from ..core.redis.cache import EphemeralCache

logger = logging.getLogger(__name__)


class IdempotencyStore:
    """Guarda el cuerpo de respuestas exitosas para reproducirlas.

    Si la caché no está disponible simplemente no hay replay (fail open).
    """

    KEY_PREFIX = "idempotency:"

    def __init__(self, cache: EphemeralCache, ttl_seconds: int = 300):
        self._cache = cache
        self._ttl = ttl_seconds

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._cache.get(f"{self.KEY_PREFIX}{key}")
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[IDEMPOTENCY] cached body is not JSON key=%s", key)
            return None

    def put(self, key: str, body: Dict[str, Any]) -> None:
        self._cache.set_with_ttl(f"{self.KEY_PREFIX}{key}", json.dumps(body), self._ttl)
