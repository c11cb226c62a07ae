"""
Blog API — Health Check Route
===============================

What:  Health check endpoint for container orchestrators and load balancers.
How:   Checks the database and the upload directory and returns an aggregate
       status. Registered on FastAPI directly, ahead of the route table.
Who:   Called by Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   everything operational (HTTP 200)
    - degraded:  uploads directory not writable; reads still work (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import os
import time
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from blogapi import __version__
from blogapi.database import ping
from blogapi.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(request: Request):
    """
    Check the database and the upload directory.

    Check details:
        Database: SELECT 1 through the application's engine
        Storage:  upload root exists and is writable by this process
    """
    db_status = "connected"
    storage_status = "writable"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        await ping(request.app.state.engine)
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    # ── Check Storage ─────────────────────────────────────────────────────
    upload_root = Path(request.app.state.settings.upload_root)
    if not (upload_root.is_dir() and os.access(upload_root, os.W_OK)):
        storage_status = "unwritable"
        overall = "degraded" if overall != "unhealthy" else overall
        logger.warning("Health check: upload directory %s is not writable", upload_root)

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(body.model_dump(), status_code=503 if overall == "unhealthy" else 200)
