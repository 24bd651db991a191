import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.clock import Clock
from backend.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
    ENABLE_SCHEDULER,
)
from backend.events import EventBus, RecentEvents
from backend.exceptions import PresensiError
from backend.logging_config import configure_logging, get_logger
from backend.routers import admin, attendance, auth, core, registry, sessions, teachers
from backend.services.scheduler import build_scheduler
from database.db import create_tables

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    create_tables()

    app.state.clock = Clock()
    app.state.events = EventBus()
    app.state.recent_events = RecentEvents()
    app.state.events.subscribe(app.state.recent_events)

    scheduler = None
    if ENABLE_SCHEDULER:
        scheduler = build_scheduler(app.state.clock, app.state.events)
        scheduler.start()
        log.info("scheduler_started")

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            log.info("scheduler_stopped")


app = FastAPI(title="Presensi API", lifespan=lifespan)


# -----------------------------
# CORS
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)


# -----------------------------
# Error mapping
# -----------------------------
@app.exception_handler(PresensiError)
async def presensi_error_handler(request: Request, exc: PresensiError):
    log.info(
        "request_rejected",
        path=request.url.path,
        code=exc.error_code.value,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(sqlite3.Error)
async def database_error_handler(request: Request, exc: sqlite3.Error):
    log.error("database_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "Database error. Please retry.", "code": "INTERNAL_ERROR"},
    )


app.include_router(core.router)
app.include_router(auth.router)
app.include_router(teachers.router)
app.include_router(registry.router)
app.include_router(sessions.router)
app.include_router(attendance.router)
app.include_router(admin.router)
