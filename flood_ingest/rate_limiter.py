"""Rate limiter por sensor del endpoint legacy.

Contador compartido en Redis (``rate:<sensor_id>``) con ventana fija:
el primer INCR fija el EXPIRE. Si la caché falla la petición continúa
sin límite.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .api_errors import ApiError
from .common.config import Settings
from .core.redis.cache import EphemeralCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuración de rate limiting."""
    sensor_per_window: int = 20
    window_seconds: int = 60
    enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitConfig":
        return cls(
            sensor_per_window=settings.rate_limit_sensor_per_min,
            window_seconds=settings.rate_limit_window_seconds,
            enabled=settings.rate_limit_enabled,
        )


class IngestRateLimiter:
    """Rate limiter para la API de ingesta (una instancia por app)."""

    def __init__(self, cache: EphemeralCache, config: RateLimitConfig):
        self._cache = cache
        self.config = config

    def _reject(self, limit: int) -> ApiError:
        retry_after = self.config.window_seconds
        return ApiError(
            429,
            "Rate limit exceeded",
            "RATE_LIMIT_EXCEEDED",
            headers={"Retry-After": str(retry_after), "X-RateLimit-Limit": str(limit)},
            retryAfter=retry_after,
        )

    def check_sensor(self, sensor_id: str) -> None:
        """Raises ApiError(429) si el sensor excede su límite."""
        if not self.config.enabled or not sensor_id:
            return
        count = self._cache.incr_with_ttl(f"rate:{sensor_id}", self.config.window_seconds)
        if count is None:
            return
        limit = self.config.sensor_per_window
        if count > limit:
            logger.warning(
                "RATE_LIMIT_EXCEEDED sensor=%s count=%d limit=%d", sensor_id, count, limit
            )
            raise self._reject(limit)
