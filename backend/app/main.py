from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings
from app.context import RelayContext
from routes import health, relay_ws


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    relay = RelayContext.build(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        relay.sweeper.start()
        try:
            yield
        finally:
            await relay.sweeper.stop()

    app = FastAPI(title="Dual Relay", version="0.1.0", lifespan=lifespan)
    app.state.relay = relay
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router)
    app.include_router(relay_ws.router)
    return app

