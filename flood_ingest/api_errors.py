"""Errores HTTP con código estable y sus handlers.

Todas las respuestas de error tienen la forma
``{"ok": false, "error": <mensaje>, "code": <CÓDIGO>}`` (más campos extra).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import ValidationError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    def __init__(
        self,
        status_code: int,
        error: str,
        code: str,
        headers: Optional[Dict[str, str]] = None,
        **extra: Any,
    ):
        super().__init__(status_code=status_code, detail=error, headers=headers)
        self.code = code
        self.extra = extra


def validation_error_body(exc: ValidationError) -> Dict[str, Any]:
    return {
        "ok": False,
        "error": str(exc),
        "code": "VALIDATION_ERROR",
        "field": exc.field,
    }


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError):
        body = {"ok": False, "error": exc.detail, "code": exc.code, **exc.extra}
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=validation_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg', 'invalid')}" if field else "Validation failed"
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": message, "code": "VALIDATION_ERROR", "field": field or None},
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception("[API] unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Internal server error", "code": "INGEST_ERROR"},
        )
