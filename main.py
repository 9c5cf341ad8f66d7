from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from celery_worker import celery_app
from core.database import client as mongo_client
from core.errors import storage_exception
from core.queue.celery_provider import CeleryQueueProvider
from core.queue.manager import QueueManager
from core.response_envelope import error_response, http_exception_response, request_id_from
from core.scheduler import scheduler
from core.settings import get_settings
from core.storage.errors import StorageError
from core.storage.manager import StorageManager
from core.storage.notifier import QueueNotifier
from repositories import drive_repo
from repositories.user_repo import list_admin_recipients
from services.file_service import purge_deleted_files, verify_file_integrity

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


def schedule_storage_jobs(manager: StorageManager) -> None:
    manager.monitor.schedule(scheduler, interval_minutes=settings.storage_poll_interval_minutes)
    scheduler.add_job(
        manager.monitor.run_once,
        id="storage_capacity_initial_poll",
        name="Initial storage capacity poll",
        replace_existing=True,
    )
    scheduler.add_job(
        verify_file_integrity,
        trigger=CronTrigger(hour=1, minute=0),
        kwargs={"manager": manager},
        id="storage_file_integrity",
        name="Stored file integrity check",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        purge_deleted_files,
        trigger=CronTrigger(day_of_week="sun", hour=0, minute=0),
        kwargs={"manager": manager, "older_than_days": settings.storage_purge_after_days},
        id="storage_file_purge",
        name="Soft-deleted file purge",
        replace_existing=True,
        max_instances=1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    queue = QueueManager(CeleryQueueProvider(celery_app=celery_app))

    manager = StorageManager.build(
        settings,
        store=drive_repo,
        notifier=QueueNotifier(queue),
        admin_source=list_admin_recipients,
    )
    await manager.registry.bootstrap(list(settings.storage_backends))
    app.state.storage_manager = manager

    schedule_storage_jobs(manager)
    scheduler.start()
    logger.info("Storage service started with %d configured backend(s)", len(settings.storage_backends))

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(lifespan=lifespan, title="Cultural Registry Storage API")
app.add_middleware(RequestIdMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins) if settings.cors_origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return http_exception_response(exc=exc, request=request)


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    logger.warning("Storage request failed: %s", exc.message)
    return http_exception_response(exc=storage_exception(exc), request=request)


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        status_code=422,
        message="Validation error",
        data={"code": "VALIDATION_FAILED", "details": exc.errors()},
        request_id=request_id_from(request),
    )


@app.exception_handler(Exception)
async def custom_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = str(exc) if (settings.debug_include_error_details and not settings.is_production) else None
    return error_response(
        status_code=500,
        message="Internal Server Error",
        data={"code": "INTERNAL_ERROR", "details": details},
        request_id=request_id_from(request),
    )


@app.get("/health", tags=["Health"])
async def health_check():
    services: dict[str, dict[str, str | float]] = {}
    overall_status = "healthy"

    start = time.perf_counter()
    try:
        await mongo_client.admin.command("ping")
        services["mongo"] = {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "message": "MongoDB ping successful",
        }
    except Exception as exc:
        overall_status = "degraded"
        services["mongo"] = {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "message": str(exc),
        }

    services["apscheduler"] = {
        "status": "healthy" if scheduler.running else "unhealthy",
        "latency_ms": 0,
        "message": f"{len(scheduler.get_jobs())} job(s) scheduled",
    }
    if not scheduler.running:
        overall_status = "degraded"

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
    }


from api.v1.drives_route import router as v1_drives_route_router  # noqa: E402
from api.v1.files_route import router as v1_files_route_router  # noqa: E402

app.include_router(v1_drives_route_router, prefix='/v1')
app.include_router(v1_files_route_router, prefix='/v1')
