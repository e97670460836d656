"""
clubpoints.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn clubpoints.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

load_dotenv()

from clubpoints import __version__  # noqa: E402
from clubpoints.api.deps import get_engine, shutdown_live_sync  # noqa: E402
from clubpoints.api.routes.events import router as events_router  # noqa: E402
from clubpoints.api.routes.ledger import router as ledger_router  # noqa: E402
from clubpoints.api.routes.members import router as members_router  # noqa: E402
from clubpoints.api.routes.polls import router as polls_router  # noqa: E402
from clubpoints.database.engine import init_db  # noqa: E402
from clubpoints.services.photo_store import PHOTO_DIR, ensure_photo_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: tables, photo dir, live-sync teardown."""
    engine = get_engine()
    init_db(engine)
    logger.info("Club points API started (%s)", engine.url.database)
    yield
    await shutdown_live_sync()
    logger.info("Club points API shutting down")


ensure_photo_dir()

app = FastAPI(
    title="Club Points API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(members_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(polls_router, prefix="/api")
app.include_router(ledger_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


app.mount("/api/photos", StaticFiles(directory=str(PHOTO_DIR)), name="photos")
