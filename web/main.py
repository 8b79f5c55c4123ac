"""FastAPI application entrypoint for the multi-tenant notes API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
import models  # noqa: F401  (register tables on Base.metadata)
from core.env import env_bool, env_list
from core.logging import get_logger
from services.errors import InternalError, NotesServiceError
from services.seed_service import seed_demo_data
from web import routers
from web.errors import service_error

logger = get_logger(__name__)

API_PREFIX = "/api/v1"
_ALLOWED_ORIGINS = env_list("NOTES_CORS_ORIGINS", ["http://localhost:5173"])
_ALLOW_VERCEL_PREVIEWS = env_bool("NOTES_CORS_ALLOW_VERCEL", True)
_SEED_ON_STARTUP = env_bool("NOTES_SEED_ON_STARTUP", False)


def _origin_regex() -> str | None:
    if not _ALLOW_VERCEL_PREVIEWS:
        return None
    return r"https://[A-Za-z0-9-]+\.vercel\.app"


def seed_demo_data_on_startup() -> None:
    if not _SEED_ON_STARTUP:
        return
    database.Base.metadata.create_all(bind=database.engine)
    try:
        with database.session_scope() as session:
            seeded = seed_demo_data(session)
    except InternalError:
        logger.warning("Demo seeding skipped after a storage failure.")
        return
    logger.info("Seeded demo accounts: %s", ", ".join(seeded) or "none")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    seed_demo_data_on_startup()
    yield


app = FastAPI(
    title="Multi-Tenant Notes API",
    description="Tenant-scoped notes with plan, role and per-user Pro entitlements.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_origin_regex=_origin_regex(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotesServiceError)
async def _handle_service_error(request: Request, exc: NotesServiceError) -> JSONResponse:
    http_exc = service_error(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.get("/", summary="Health Check", tags=["Default"])
def health_check():
    return {"status": "ok", "message": "Multi-Tenant Notes API is running.", "version": app.version}


@app.get("/healthz", include_in_schema=False)
def liveness_probe():
    db_ok, db_error = routers.health.ping_database()
    payload = {"status": "ok" if db_ok else "unhealthy", "database": {"ok": db_ok}}
    if db_error:
        payload["database"]["error"] = db_error
    status_code = status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=payload)


app.include_router(routers.auth.router, prefix=API_PREFIX)
app.include_router(routers.notes.router, prefix=API_PREFIX)
app.include_router(routers.tenants.router, prefix=API_PREFIX)
app.include_router(routers.upgrade_requests.router, prefix=API_PREFIX)
app.include_router(routers.health.router, prefix=API_PREFIX)
