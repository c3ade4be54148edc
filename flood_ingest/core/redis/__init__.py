"""Redis: conexión y caché efímera."""

from .cache import EphemeralCache
from .connection import RedisConnection

__all__ = ["EphemeralCache", "RedisConnection"]
