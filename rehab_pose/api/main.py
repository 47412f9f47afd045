"""FastAPI application exposing REST endpoints for the rehabilitation coach.

Endpoints:
- POST /posture: evaluate the next frame from the configured source (JSON)
- POST /posture/frame: evaluate a frame detected by the client (JSON)
- /session/*: start/pause/stop/reset, status and history
- /config/profile: read/replace the reference posture
- /debug/*: pipeline latency and diagnostics

This module wires sub-routers from domain modules and provides a health check.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from loguru import logger

from rehab_pose.core.config import get_settings
from rehab_pose.core.logging_config import add_file_sink
from rehab_pose.api.routers.posture import router as posture_router, session_controller
from rehab_pose.api.routers.session import router as session_router
from rehab_pose.api.routers.config_router import router as config_router
from rehab_pose.api.routers.debug import router as debug_router
from rehab_pose.core.db import engine, Base

settings = get_settings()

# Ensure tables exist at import time (idempotent)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure file logging
    sink_id = add_file_sink(settings.data_dir / "logs", settings.log_level)
    if settings.frame_loop_enabled:
        session_controller.start_loop()
    yield
    session_controller.close()
    logger.info("Frame source closed")
    logger.remove(sink_id)


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.exposed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/health")
async def health() -> dict:
    """Return API health status."""

    return {"status": "ok"}


@app.get("/")
async def root():
    return RedirectResponse(url="/session/status", status_code=302)


# Routers
app.include_router(posture_router, prefix="", tags=["posture"])
app.include_router(session_router, prefix="", tags=["session"])
app.include_router(config_router, prefix="", tags=["config"])
app.include_router(debug_router, prefix="", tags=["debug"])
