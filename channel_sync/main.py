import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from .config import settings
from .database import create_tables, get_db, SessionLocal
from .errors import ChannelSyncError
from .routers import availability, sync, webhooks
from .services.webhook_processor import process_stale_pending
from .utils.logging_config import setup_logging, set_request_context, clear_request_context, get_logger

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting channel sync ({settings.environment}, channel {settings.channel_name})")
    create_tables()

    if not settings.webhook_secret:
        log = logger.error if settings.is_production else logger.warning
        log("BEDS24_WEBHOOK_SECRET is not set, every webhook will be rejected")

    # Events recorded before a crash are still pending; pick them up again
    if settings.reprocess_pending_on_startup:
        try:
            count = await run_in_threadpool(process_stale_pending, SessionLocal)
            if count:
                logger.info(f"Reprocessed {count} stale pending webhook events")
        except Exception as e:
            logger.error(f"Stale pending recovery failed: {e}", exc_info=True)

    yield

    logger.info("Shutting down channel sync")


app = FastAPI(
    title="Channel Sync",
    description="Synchronizes channel manager bookings with the PMS",
    version="1.0.0",
    lifespan=lifespan
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
            structured_logger.api_request(
                request.method,
                request.url.path,
                response.status_code,
                round((time.monotonic() - started) * 1000, 2),
            )
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


@app.exception_handler(ChannelSyncError)
async def channel_sync_error_handler(request: Request, exc: ChannelSyncError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(webhooks.router)
app.include_router(availability.router)
app.include_router(sync.router)


@app.get("/")
async def root():
    return {
        "message": "Channel Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
        "channel": settings.channel_name
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "up"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database = "down"
    return {"status": "healthy" if database == "up" else "degraded", "database": database}
