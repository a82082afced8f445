"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, Response, status

from bacchus.api.schemas import DrinkRequest, FoodRequest, HistoryOut, SessionOut
from bacchus.app_logging import configure_logging
from bacchus.containers import AppContainer
from bacchus.services.engine import SessionEngine, SessionResult


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = app.state.container.sweeper
        if sweeper is not None:
            sweeper.start()
        yield
        if sweeper is not None:
            await sweeper.stop()
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    def _engine(request: Request, profile_id: UUID | None = None) -> SessionEngine:
        engine: SessionEngine = request.app.state.container.engine
        if profile_id is not None:
            engine.ensure_loaded(profile_id)
        return engine

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/profiles/{profile_id}/session")
    async def start_session(
        profile_id: UUID, request: Request, response: Response
    ) -> SessionOut:
        """Start a session, or return the one already active."""
        engine = _engine(request, profile_id)
        result = engine.start_session(profile_id)
        if result.applied:
            response.status_code = status.HTTP_201_CREATED
        return _session_out(result, engine.clock())

    @app.get("/profiles/{profile_id}/session")
    async def get_session(profile_id: UUID, request: Request) -> SessionOut:
        """Return the active session with its last computed BAC."""
        engine = _engine(request, profile_id)
        return _session_out(engine.get_active_session(profile_id), engine.clock())

    @app.delete("/profiles/{profile_id}/session")
    async def end_session(profile_id: UUID, request: Request) -> SessionOut:
        """End the active session."""
        engine = _engine(request, profile_id)
        return _session_out(engine.end_session(profile_id), engine.clock())

    @app.get("/profiles/{profile_id}/history")
    async def get_history(profile_id: UUID, request: Request) -> HistoryOut:
        """Return ended sessions, newest first."""
        engine = _engine(request, profile_id)
        now = engine.clock()
        return HistoryOut(
            sessions=[
                SessionOut.from_session(s, now) for s in engine.get_history(profile_id)
            ]
        )

    @app.post("/profiles/{profile_id}/drinks")
    async def add_drink(
        profile_id: UUID, payload: DrinkRequest, request: Request
    ) -> SessionOut:
        """Log a drink on the active session."""
        engine = _engine(request, profile_id)
        result = engine.add_drink(profile_id, payload.to_event())
        return _mutation_out(result, engine.clock())

    @app.delete("/profiles/{profile_id}/drinks/{drink_id}")
    async def remove_drink(
        profile_id: UUID, drink_id: UUID, request: Request
    ) -> SessionOut:
        """Remove a drink from the active session."""
        engine = _engine(request, profile_id)
        return _mutation_out(engine.remove_drink(profile_id, drink_id), engine.clock())

    @app.post("/profiles/{profile_id}/foods")
    async def add_food(
        profile_id: UUID, payload: FoodRequest, request: Request
    ) -> SessionOut:
        """Log a food on the active session."""
        engine = _engine(request, profile_id)
        result = engine.add_food(profile_id, payload.to_event())
        return _mutation_out(result, engine.clock())

    @app.delete("/profiles/{profile_id}/foods/{food_id}")
    async def remove_food(
        profile_id: UUID, food_id: UUID, request: Request
    ) -> SessionOut:
        """Remove a food from the active session."""
        engine = _engine(request, profile_id)
        return _mutation_out(engine.remove_food(profile_id, food_id), engine.clock())

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_session(session_id: UUID, request: Request) -> Response:
        """Permanently delete a session."""
        result = _engine(request).delete_session(session_id)
        if not result.applied:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
            )
        logger.info("Session deleted via API", extra={"session_id": str(session_id)})
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


def _session_out(result: SessionResult, now: datetime) -> SessionOut:
    if result.session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No active session"
        )
    return SessionOut.from_session(result.session, now)


def _mutation_out(result: SessionResult, now: datetime) -> SessionOut:
    session = _session_out(result, now)
    if not result.applied:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Nothing to change"
        )
    return session
