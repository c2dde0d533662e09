"""
Primefield Farm field agent.
Runs beside the farm manager's data-entry UI and keeps writes flowing through dead zones:
immediate delivery when online, a durable local queue otherwise, automatic sync on reconnect.
"""
import logging
import math
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .models.base import Base, engine
from .models import local_storage  # noqa: F401 registers the local_storage table
from .api import offline, manager
from .services.offline_sync import offline_sync_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create all database tables
# NOTE: Alembic migrations in backend/alembic manage the schema for upgraded devices
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    offline_sync_service.start()
    logger.info(
        "Field agent started (online=%s, pending=%d)",
        offline_sync_service.monitor.is_online,
        offline_sync_service.pending_count,
    )
    yield
    await offline_sync_service.stop()
    await offline_sync_service.api_client.aclose()


app = FastAPI(
    title="Primefield Farm Field Agent",
    description=(
        "Offline-first data entry for the farm manager: sales, expenses and stock moves "
        "are delivered to the farm API immediately or queued on the device until connectivity returns."
    ),
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json_safe(value):
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    """Default 422 body, with NaN/Infinity inputs echoed as text so the response stays valid JSON."""
    return JSONResponse(status_code=422, content={"detail": _json_safe(jsonable_encoder(exc.errors()))})


app.include_router(offline.router, prefix="/api/v1")
app.include_router(manager.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Primefield Farm Field Agent", "version": settings.VERSION}
