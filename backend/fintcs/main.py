"""FINTCS FastAPI application."""
from contextlib import asynccontextmanager
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fintcs.config import settings
from fintcs.database import async_engine, create_all
from fintcs.services.audit_service import AuditEventCategory, get_audit_writer, make_event

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def _system_event(action: str, details: dict | None = None) -> None:
    """Fire a SYSTEM-category audit event (non-blocking)."""
    get_audit_writer().fire_and_forget(make_event(
        action,
        category=AuditEventCategory.SYSTEM,
        resource_type="system",
        details=details,
    ))


scheduler = AsyncIOScheduler()


async def run_audit_retention_purge():
    """Purge expired audit events from SQLite and JSONL."""
    from fintcs.services.audit_retention import purge_audit_retention

    _system_event("system.scheduler.audit_retention_purge", {"status": "started"})
    try:
        summary = purge_audit_retention(settings.AUDIT_STORAGE_PATH)
        _system_event("system.scheduler.audit_retention_purge", {
            "status": "completed", **summary,
        })
    except Exception as e:
        logger.exception("Audit retention purge failed")
        _system_event("system.scheduler.audit_retention_purge", {
            "status": "failed", "error": str(e),
        })


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting FINTCS API...")
    _system_event("system.startup")

    try:
        async with async_engine.begin() as conn:
            await conn.exec_driver_sql("SELECT 1")
        logger.info("Database connection verified")
        if settings.CREATE_TABLES_ON_STARTUP:
            await create_all()
    except Exception as e:
        logger.error(f"Database connection failed: {e}")

    if settings.AUDIT_RETENTION_ENABLED:
        scheduler.add_job(run_audit_retention_purge, "interval", hours=24, id="audit_retention_purge")
        scheduler.start()
        logger.info("Scheduled jobs started (audit retention)")

    logger.info("FINTCS API started successfully")
    yield

    _system_event("system.shutdown")
    if scheduler.running:
        scheduler.shutdown()
    await async_engine.dispose()
    logger.info("FINTCS API shut down")


app = FastAPI(
    title="FINTCS",
    description="Cooperative society financial administration API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Read-access audit middleware for sensitive endpoints
from fintcs.middleware.audit_middleware import AuditReadAccessMiddleware  # noqa: E402

SENSITIVE_PREFIXES = [
    "/api/dashboard",
    "/api/users",
    "/api/members",
    "/api/loans",
]
app.add_middleware(
    AuditReadAccessMiddleware,
    writer=get_audit_writer(),
    prefixes=SENSITIVE_PREFIXES,
)

from fintcs.routes import (  # noqa: E402
    auth,
    dashboard,
    loans,
    members,
    monthly_demands,
    societies,
    users,
    vouchers,
)

app.include_router(auth.router)
app.include_router(societies.router)
app.include_router(users.router)
app.include_router(members.router)
app.include_router(loans.router)
app.include_router(vouchers.router)
app.include_router(monthly_demands.router)
app.include_router(dashboard.router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "FINTCS API", "version": "1.0.0"}
