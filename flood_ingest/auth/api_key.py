"""Autenticación por API key estática.

SECURITY: en producción API_KEY_SECRET y ADMIN_KEY deben estar configuradas.
En desarrollo, si no lo están, se permite el acceso con un warning.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from ..api_errors import ApiError
from ..container import ServiceContainer
from ..endpoints.deps import get_container

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _check_key(
    provided: Optional[str],
    expected: Optional[str],
    is_production: bool,
    env_name: str,
) -> None:
    if not expected:
        if is_production:
            logger.error("CRITICAL: %s not configured in production!", env_name)
            raise ApiError(500, "Server misconfiguration: API key not set", "AUTH_ERROR")
        logger.warning(
            "[SECURITY WARNING] %s not set - allowing unauthenticated access (DEV ONLY)",
            env_name,
        )
        return

    if not provided:
        raise ApiError(401, "Missing API key", "MISSING_API_KEY")

    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Invalid API key attempt from request")
        raise ApiError(403, "Invalid API key", "INVALID_API_KEY")


def require_api_key(
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Valida ``Authorization: Bearer <key>`` (o ``X-API-Key``) contra API_KEY_SECRET."""
    settings = container.settings
    _check_key(
        _bearer_token(authorization) or x_api_key,
        settings.api_key_secret,
        settings.is_production,
        "API_KEY_SECRET",
    )


def require_admin_key(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Valida ``X-Admin-Key`` contra ADMIN_KEY (endpoints de configuración)."""
    settings = container.settings
    _check_key(x_admin_key, settings.admin_key, settings.is_production, "ADMIN_KEY")
