# main.py
from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

# Import logging utilities early so that the logger configuration is
# applied before any other modules emit log messages.
from app.logging_config import logger
import json
import time

from app.clients.catalog_client import CatalogClient
from app.clients.http_client import HTTPClient
from app.core.config import get_settings
from app.core.context import CredentialContext
from app.routes.items import router as items_router
from app.services.cache_store import ItemCacheStore
from app.services.lookup_service import ItemLookupService


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    # one pooled HTTP client and one cache connection for the whole process
    http_client = HTTPClient()
    service = ItemLookupService(
        cache=ItemCacheStore(),
        catalog=CatalogClient(http_client),
        credentials=CredentialContext(),
    )
    await service.init()
    app.state.http_client = http_client
    app.state.lookup_service = service

    sweep = None
    if settings.cache_sweep_interval_seconds > 0:
        sweep = asyncio.create_task(service.run_expiry_sweep(settings.cache_sweep_interval_seconds))
    try:
        yield
    finally:
        if sweep is not None:
            sweep.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep
        await service.cache.close()
        await http_client.close()


def create_app() -> FastAPI:
    app = FastAPI(default_response_class=ORJSONResponse, lifespan=lifespan)

    app.include_router(items_router)

    # -----------------------------------------------------------------
    # Request logging middleware
    # -----------------------------------------------------------------
    # Records path, method, status code and processing time of every
    # incoming request as one JSON line.
    @app.middleware("http")  # type: ignore[misc]
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(json.dumps({
            "event": "http_request",
            "path": request.url.path,
            "method": request.method,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }))
        return response

    return app

app = create_app()
