"""
FastAPI Application

HTTP API for slot booking, UPI payment verification and interview lifecycle.
"""

import asyncio
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from mockbook import __version__
from mockbook.config import get_config
from mockbook.db.mongo import ensure_indexes
from mockbook.services.container import get_container
from mockbook.utils.exceptions import (
    BookingError,
    ConflictError,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    PendingPaymentExistsError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from mockbook.utils.logger import get_logger, setup_logging
from mockbook.api import interviews as interviews_api
from mockbook.api import payments as payments_api
from mockbook.api import prices as prices_api
from mockbook.api import ratings as ratings_api
from mockbook.api import slots as slots_api

config = get_config()
setup_logging(config)
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Mock Interview Booking API",
    description="API for interview slot booking and UPI payment verification",
    version=__version__,
)

_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
if config.server.frontend_url:
    _cors_origins.append(config.server.frontend_url.rstrip("/"))
# Extra origins from env (comma-separated), e.g. CORS_ORIGINS=https://app.example.com,https://admin.example.com
for _origin in os.getenv("CORS_ORIGINS", "").split(","):
    _origin = _origin.strip().rstrip("/")
    if _origin and _origin not in _cors_origins:
        _cors_origins.append(_origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first: PendingPaymentExistsError is checked before its base
ERROR_STATUS = [
    (PendingPaymentExistsError, 400),
    (ValidationError, 400),
    (UnauthorizedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (DuplicateError, 409),
    (InvalidStateError, 409),
    (StorageError, 503),
]


def status_for(error: BookingError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(error, cls):
            return code
    return 500


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(status_code=code, content={"detail": exc.message, **exc.to_dict()})


app.include_router(slots_api.router)
app.include_router(prices_api.router)
app.include_router(payments_api.router)
app.include_router(interviews_api.router)
app.include_router(ratings_api.router)

_reminder_task: Optional[asyncio.Task] = None


@app.on_event("startup")
async def startup():
    """Ensure indexes and default prices, then start the reminder sweep."""
    global _reminder_task
    services = get_container()
    logger.info(f"[API] MongoDB database in use: {services.db.name}")
    try:
        ensure_indexes(services.db)
    except Exception as e:
        logger.warning(f"[API] Index creation skipped or partial: {e}")
    services.prices.seed_defaults()
    _reminder_task = asyncio.create_task(services.reminders.run_forever())


@app.on_event("shutdown")
async def shutdown():
    if _reminder_task is not None:
        _reminder_task.cancel()


@app.get("/health")
async def health():
    """Liveness check: returns 200 if the process is running."""
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    """Readiness check: returns 200 if the app can serve traffic (e.g. DB reachable)."""
    try:
        get_container().db.client.admin.command("ping")
        return {"status": "ready"}
    except Exception as e:
        logger.warning(f"[API] Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Service not ready")


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics for monitoring."""
    try:
        from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
    except Exception as e:
        logger.warning(f"[API] Metrics export failed: {e}")
        raise HTTPException(status_code=503, detail="Metrics not available")
