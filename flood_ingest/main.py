"""Servicio de ingesta y alertas de inundación.

Punto de entrada ASGI: ``flood_ingest.main:asgi_app`` (FastAPI + Socket.IO).
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api_errors import install_exception_handlers
from .common.config import Settings, get_settings
from .container import ServiceContainer, build_container
from .endpoints import alerts, config, data_ingest, data_queries, health
from .realtime.socketio import SocketIOBroadcaster, create_combined_app, create_socket_server

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """App factory.

    Si no se inyecta ``container`` se construye en el arranque (lifespan)
    con conexiones reales a BD y Redis.
    """
    settings = settings or (container.settings if container else get_settings())
    sio = create_socket_server(settings.cors_origins)
    broadcaster = SocketIOBroadcaster(sio)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[APP] Starting flood ingest service env=%s", settings.environment)
        if app.state.container is None:
            app.state.container = build_container(settings, broadcaster)
        broadcaster.bind_loop(asyncio.get_running_loop())
        app.state.container.start()

        yield

        logger.info("[APP] Shutting down")
        app.state.container.close()
        broadcaster.bind_loop(None)

    app = FastAPI(title="Flood Ingest Service", version=__version__, lifespan=lifespan)
    app.state.container = container
    app.state.sio = sio

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "[HTTP] %s %s status=%d duration_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response

    install_exception_handlers(app)

    app.include_router(health.router, prefix=API_PREFIX)
    app.include_router(data_ingest.router, prefix=API_PREFIX)
    app.include_router(data_queries.router, prefix=API_PREFIX)
    app.include_router(config.router, prefix=API_PREFIX)
    app.include_router(alerts.router, prefix=API_PREFIX)

    return app


app = create_app()
asgi_app = create_combined_app(app.state.sio, app)


def run() -> None:
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run("flood_ingest.main:asgi_app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
