"""FastAPI liveness endpoint hosting the oracle schedule in its lifespan."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ao_price_oracle.core.config import get_settings
from ao_price_oracle.core.errors import ConfigurationError
from ao_price_oracle.core.logging import configure_logging
from ao_price_oracle.core.time_utils import utc_now
from ao_price_oracle.services.oracle.main import build_supervisor

settings = get_settings()
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)
_STARTED_MONOTONIC = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the oracle schedule for the lifetime of the server."""

    logger.info(
        "api_startup",
        extra={"service": "api", "env": settings.ENV, "version": settings.VERSION, "port": settings.PORT},
    )
    shutdown_event = asyncio.Event()
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_S) as http:
        try:
            supervisor = build_supervisor(settings, http)
        except ConfigurationError as exc:
            logger.error("oracle_configuration_error", extra={"error": str(exc)})
            raise

        app.state.supervisor = supervisor
        serve_task = asyncio.create_task(supervisor.serve(shutdown_event), name="oracle-serve")
        try:
            yield
        finally:
            logger.info("api_shutdown")
            shutdown_event.set()
            await serve_task


app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Report unknown paths as a JSON error body."""

    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Not Found"})
    return await http_exception_handler(request, exc)


@app.get("/")
@app.get("/health")
def health() -> dict[str, Any]:
    """Return process liveness status."""

    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "timestamp": utc_now().isoformat(),
        "uptime": round(time.monotonic() - _STARTED_MONOTONIC, 3),
        "version": settings.VERSION,
    }
