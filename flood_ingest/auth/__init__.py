"""Módulo de autenticación por API key.

- API key (ingesta y operaciones de alertas)
- Admin key (configuración de sensores)
"""

from .api_key import require_admin_key, require_api_key

__all__ = ["require_admin_key", "require_api_key"]
