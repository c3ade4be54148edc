"""Endpoints de ingesta de lecturas del gateway."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header
from fastapi.responses import JSONResponse

from ..api_errors import ApiError
from ..auth import require_api_key
from ..common.timeutils import isoformat
from ..container import ServiceContainer
from ..errors import StorageError
from ..ingest.service import dispatch_side_effects
from ..schemas import IngestAccepted, IngestDuplicate
from .deps import get_container

router = APIRouter(prefix="/data", tags=["ingest"])
logger = logging.getLogger(__name__)


def _internal_error(container: ServiceContainer, e: Exception) -> ApiError:
    detail = "Internal server error"
    if container.settings.debug_errors:
        detail = f"{detail}: {type(e).__name__}: {e}"
    return ApiError(500, detail, "INGEST_ERROR")


def _ingest(
    container: ServiceContainer,
    payload: Any,
    idempotency_key: Optional[str],
) -> JSONResponse:
    try:
        outcome = container.ingestion.ingest(payload)
    except StorageError as e:
        logger.error("[INGEST] storage error: %s", e)
        raise _internal_error(container, e)

    received_at = isoformat(outcome.received_at)
    if outcome.accepted:
        status_code = 201
        body = IngestAccepted(received_at=received_at, reading_id=outcome.reading.reading_id).model_dump()
    else:
        status_code = 200
        body = IngestDuplicate(received_at=received_at).model_dump()

    if idempotency_key:
        container.idempotency.put(idempotency_key, body)

    # La evaluación de alertas se encola con la respuesta ya preparada.
    dispatch_side_effects(outcome, container.broadcaster, container.processor)
    return JSONResponse(status_code=status_code, content=body)


def _replay(container: ServiceContainer, idempotency_key: Optional[str]) -> Optional[JSONResponse]:
    if not idempotency_key:
        return None
    cached = container.idempotency.get(idempotency_key)
    if cached is None:
        return None
    logger.info("[INGEST] idempotent replay key=%s", idempotency_key)
    return JSONResponse(status_code=200, content=cached)


@router.post(
    "/sensor",
    status_code=201,
    response_model=IngestAccepted,
    dependencies=[Depends(require_api_key)],
)
def ingest_sensor_data(
    payload: Any = Body(...),
    idempotency_key: Optional[str] = Header(default=None, alias="X-Idempotency-Key"),
    container: ServiceContainer = Depends(get_container),
):
    """Ingesta principal del gateway TTGO (formato TTGO o legacy)."""
    replay = _replay(container, idempotency_key)
    if replay is not None:
        return replay
    return _ingest(container, payload, idempotency_key)


@router.post(
    "/ingest",
    status_code=201,
    response_model=IngestAccepted,
    dependencies=[Depends(require_api_key)],
)
def ingest_legacy(
    payload: Any = Body(...),
    idempotency_key: Optional[str] = Header(default=None, alias="X-Idempotency-Key"),
    container: ServiceContainer = Depends(get_container),
):
    """Endpoint legacy: mismo contrato más rate limit por sensor."""
    replay = _replay(container, idempotency_key)
    if replay is not None:
        return replay

    if isinstance(payload, dict) and payload.get("sensor_id"):
        container.rate_limiter.check_sensor(str(payload["sensor_id"]))
    return _ingest(container, payload, idempotency_key)
