from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import settings
from core.db import DatabaseConnection
from people import repository as people_repository
from people import router as people_router


def create_app(database: DatabaseConnection) -> FastAPI:
    """
    Build the FastAPI app around an existing connection manager.

    The lifecycle controller connects `database` before the listener starts,
    so the lifespan hook only has to make sure indexes exist.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if database.is_connected:
            await people_repository.ensure_indexes(database)
        yield

    app = FastAPI(title="band-registry", lifespan=lifespan)
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.people_api_enabled():
        app.include_router(people_router.router, tags=["people"])

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    @app.get("/ready")
    async def ready() -> JSONResponse:
        if await database.ping():
            return JSONResponse(status_code=200, content={"ok": True, "database": "connected"})
        return JSONResponse(status_code=503, content={"ok": False, "database": database.ready_state.value})

    return app
