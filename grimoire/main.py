from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grimoire.api import (
    catalog_router,
    daily_router,
    deck_router,
    health_router,
    spellbook_router,
)
from grimoire.config import settings
from grimoire.db.database import init_db
from grimoire.runtime import create_runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    runtime = create_runtime()
    await runtime.start()
    app.state.runtime = runtime
    try:
        yield
    finally:
        await runtime.aclose()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("grimoire"),
    lifespan=lifespan,
)

app.include_router(catalog_router)
app.include_router(daily_router)
app.include_router(deck_router)
app.include_router(health_router)
app.include_router(spellbook_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
