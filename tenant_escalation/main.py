"""FastAPI application exposing the tenant work-order escalation cycle."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text

from tenant_escalation.config import settings
from tenant_escalation.connectors.email_smtp import SMTPEmailConnector
from tenant_escalation.escalation.engine import EscalationEngine
from tenant_escalation.escalation.scheduler import EscalationScheduler
from tenant_escalation.models.database import create_tables, get_db_session
from tenant_escalation.models.work_order import WorkOrder, WorkOrderStatus
from tenant_escalation.utils.logging import CorrelationContextManager, get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger(__name__)

# Global service instances
escalation_engine: Optional[EscalationEngine] = None
escalation_scheduler: Optional[EscalationScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global escalation_engine, escalation_scheduler

    logger.info("Starting tenant work order escalation service")

    await create_tables()
    logger.info("Database tables created/verified")

    escalation_engine = EscalationEngine()
    if settings.ENABLE_ESCALATION:
        escalation_scheduler = EscalationScheduler(engine=escalation_engine)
        await escalation_scheduler.start()

    yield

    logger.info("Shutting down tenant work order escalation service")
    if escalation_scheduler:
        await escalation_scheduler.stop()
        escalation_scheduler = None


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Time-driven escalation of unresolved tenant maintenance requests",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


def get_escalation_engine() -> EscalationEngine:
    """Dependency returning the engine created at startup."""
    if escalation_engine is None:
        raise HTTPException(status_code=503, detail="Escalation engine not initialized")
    return escalation_engine


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }


def get_smtp_connector() -> SMTPEmailConnector:
    """Dependency returning the SMTP connector used for notices."""
    return SMTPEmailConnector()


async def check_database_health() -> Dict[str, Any]:
    """Check database connectivity and count work orders awaiting the agent."""
    try:
        started = time.monotonic()
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            result = await session.execute(
                select(func.count(WorkOrder.id))
                .where(WorkOrder.status == WorkOrderStatus.AWAITING_RESPONSIBLE_PARTY)
            )
            awaiting = result.scalar()

        return {
            "status": "healthy",
            "response_time_ms": round((time.monotonic() - started) * 1000, 2),
            "awaiting_work_orders": awaiting
        }
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return {"status": "critical", "error": str(e)}


async def check_smtp_health(connector: SMTPEmailConnector) -> Dict[str, Any]:
    """Check that the SMTP server accepts connections."""
    if await connector.check_connection():
        return {"status": "healthy"}
    return {"status": "degraded", "error": "SMTP server unreachable or not configured"}


@app.get("/health/detailed")
async def detailed_health_check(smtp: SMTPEmailConnector = Depends(get_smtp_connector)):
    """Detailed health check with component status."""
    components = {
        "database": await check_database_health(),
        "smtp": await check_smtp_health(smtp)
    }
    statuses = {component["status"] for component in components.values()}
    if "critical" in statuses:
        overall = "critical"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    content = {
        "overall_status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": components
    }
    if overall == "critical":
        return JSONResponse(status_code=503, content=content)
    return content


@app.post(f"{settings.API_V1_STR}/escalation/run")
async def run_escalation_cycle(engine: EscalationEngine = Depends(get_escalation_engine)):
    """Run one escalation cycle and return its report.

    Intended for an external scheduler, so no authentication is required.
    """
    with CorrelationContextManager() as correlation_id:
        logger.info("Escalation cycle requested", correlation_id=correlation_id)
        report = await engine.run_cycle()

    if not report.success:
        return JSONResponse(
            status_code=500,
            content=report.model_dump(mode="json", include={"success", "error", "message"})
        )
    return report.model_dump(mode="json")


@app.get(f"{settings.API_V1_STR}/escalation/status")
async def get_escalation_status():
    """Get escalation scheduler status."""
    if not escalation_scheduler:
        return {"status": "disabled", "jobs": [], "last_run": None}
    return escalation_scheduler.get_job_status()


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions with structured logging."""
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": str(request.url.path)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions with structured logging."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        path=request.url.path,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": str(request.url.path)
        }
    )


if __name__ == "__main__":
    uvicorn.run(
        "tenant_escalation.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
