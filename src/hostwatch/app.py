import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hostwatch import __version__
from hostwatch import api
from hostwatch.config import Settings, settings as default_settings
from hostwatch.exceptions import (
    CredentialParseError,
    HostNotFound,
    HostwatchException,
    HostwatchValidationException,
)
from hostwatch.orchestrator import BatchOrchestrator
from hostwatch.store import StatusStore


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings if settings is not None else default_settings

    @asynccontextmanager
    async def lifespan(this_app: FastAPI):
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logger = logging.getLogger(__name__)

        orchestrator = BatchOrchestrator.from_settings(
            settings, store=StatusStore(), transport=transport
        )
        this_app.state.settings = settings
        this_app.state.orchestrator = orchestrator

        logger.info(f"Probing backend: {settings.backend_url}")
        if settings.simulation_enabled:
            logger.info("Simulation fallback enabled")
        else:
            logger.warning("Simulation fallback disabled; an unreachable backend marks hosts as error")

        yield

        await orchestrator.aclose()

    app = FastAPI(
        title="Hostwatch",
        version=__version__,
        description="Batch host connectivity and telemetry probing.",
        lifespan=lifespan,
    )

    app.include_router(api.router, prefix="/api")

    @app.get("/health")
    async def health():
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "ok"}

    # Exception handlers
    @app.exception_handler(CredentialParseError)
    async def parse_exception_handler(request: Request, exc: CredentialParseError):
        logging.info(f"Rejected credential batch: {exc}")
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "detail": str(exc), "line": exc.line},
        )

    @app.exception_handler(HostwatchValidationException)
    async def validation_exception_handler(
        request: Request, exc: HostwatchValidationException
    ):
        logging.warning(f"Validation error: {exc}")
        return JSONResponse(
            status_code=400, content={"error": "Bad Request", "detail": str(exc)}
        )

    @app.exception_handler(HostNotFound)
    async def not_found_exception_handler(request: Request, exc: HostNotFound):
        logging.info(f"Resource not found: {exc}")
        return JSONResponse(
            status_code=404, content={"error": "Not Found", "detail": str(exc)}
        )

    @app.exception_handler(HostwatchException)
    async def hostwatch_exception_handler(request: Request, exc: HostwatchException):
        logging.error(f"HostwatchException occurred: {exc}")
        logging.error("".join(traceback.format_exception(exc)))

        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "detail": str(exc)},
        )

    return app
