"""FastAPI application factory for the booking suggestion API."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.config import AppConfig, settings
from src.engine.suggestion_engine import SuggestionEngine, build_engine
from src.errors import SuggestionError
from src.providers.store import (
    InMemoryBookingStore,
    InMemoryTechnicianDirectory,
    load_snapshot,
)
from src.schemas.scheduling_schema import NewCaseRequest
from src.schemas.suggestion_schema import SCHEMA_VERSION, ErrorResponse, RankedSuggestions

logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[SuggestionEngine] = None, config: Optional[AppConfig] = None
) -> FastAPI:
    """Create the API with an injected engine, or wire one at startup.

    Args:
        engine: Ready engine (tests inject one with fake providers). When
            None, startup opens a shared httpx.AsyncClient, loads the
            calendar snapshot if SNAPSHOT_PATH is set, and builds the engine
            from configuration.
        config: Configuration to build from. Defaults to the global settings.

    Returns:
        Configured FastAPI application.
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client: Optional[httpx.AsyncClient] = None
        if app.state.engine is None:
            client = httpx.AsyncClient(timeout=config.providers.http_timeout_sec)
            if config.providers.snapshot_path:
                directory, store, vehicles = load_snapshot(
                    config.providers.snapshot_path, tz=config.engine.tz
                )
            else:
                logger.warning("SNAPSHOT_PATH not set, starting with an empty calendar")
                directory, store, vehicles = (
                    InMemoryTechnicianDirectory(), InMemoryBookingStore(tz=config.engine.tz), None,
                )
            app.state.engine = build_engine(config, client, store, directory, vehicles)
            logger.info("Suggestion engine ready (%s)", config.providers.directions_backend)
        yield
        if client is not None:
            await client.aclose()
            logger.info("HTTP client closed")

    app = FastAPI(title="Booking Suggestion API", version=SCHEMA_VERSION, lifespan=lifespan)
    app.state.engine = engine

    @app.exception_handler(SuggestionError)
    async def suggestion_error_handler(request: Request, exc: SuggestionError) -> JSONResponse:
        status_code = 422 if exc.is_input_error else 503
        logger.info("Rejected suggestion request: %s", exc)
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(code=exc.code.value, detail=exc.detail).model_dump(),
        )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "schema_version": SCHEMA_VERSION}

    @app.post("/api/booking-suggestions", response_model=RankedSuggestions)
    async def booking_suggestions(body: NewCaseRequest) -> RankedSuggestions:
        """Rank candidate slots for a new case across the technician pool."""
        return await app.state.engine.suggest(body)

    return app
