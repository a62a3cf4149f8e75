"""Escalation scheduler that runs the escalation cycle on a timer."""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tenant_escalation.config import settings
from tenant_escalation.escalation.engine import EscalationEngine
from tenant_escalation.escalation.report import RunReport
from tenant_escalation.utils.logging import CorrelationContextManager, get_logger

logger = get_logger(__name__)

JOB_ID = "run_escalation_cycle"


class EscalationScheduler:
    """Scheduler for the daily escalation cycle."""

    def __init__(
        self,
        engine: Optional[EscalationEngine] = None,
        trigger: Optional[CronTrigger] = None,
    ):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.escalation_engine = engine or EscalationEngine()
        self.trigger = trigger or CronTrigger(
            hour=settings.ESCALATION_CRON_HOUR,
            minute=settings.ESCALATION_CRON_MINUTE,
            timezone="UTC"
        )
        self.is_running = False
        self.last_report: Optional[RunReport] = None

    async def start(self) -> None:
        """Start the escalation scheduler."""
        if self.is_running:
            logger.warning("Escalation scheduler already running")
            return

        self.scheduler.add_job(
            self._run_cycle,
            trigger=self.trigger,
            id=JOB_ID,
            name="Escalate Tenant Work Orders",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
            replace_existing=True
        )

        self.scheduler.start()
        self.is_running = True

        logger.info("Escalation scheduler started", trigger=str(self.trigger))

    async def stop(self) -> None:
        """Stop the escalation scheduler."""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Escalation scheduler stopped")

    async def _run_cycle(self) -> RunReport:
        """Run one cycle under a fresh correlation id."""
        with CorrelationContextManager() as correlation_id:
            report = await self.escalation_engine.run_cycle()
            self.last_report = report

            if not report.success:
                logger.error(
                    "Scheduled escalation cycle failed",
                    correlation_id=correlation_id,
                    error=report.error
                )
            elif report.processed > 0 or report.errors:
                logger.info(
                    "Scheduled escalation cycle finished",
                    correlation_id=correlation_id,
                    processed=report.processed,
                    error_count=len(report.errors)
                )

            return report

    def get_job_status(self) -> dict:
        """Get status of scheduled jobs and the last cycle."""
        last_run = None
        if self.last_report:
            last_run = {
                "success": self.last_report.success,
                "processed": self.last_report.processed,
                "errors": len(self.last_report.errors),
                "finished_at": (
                    self.last_report.finished_at.isoformat()
                    if self.last_report.finished_at else None
                )
            }

        if not self.is_running:
            return {"status": "stopped", "jobs": [], "last_run": last_run}

        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            })

        return {
            "status": "running",
            "jobs": jobs,
            "last_run": last_run
        }

    async def trigger_escalation_processing(self) -> RunReport:
        """Manually run a cycle outside the schedule."""
        report = await self._run_cycle()
        logger.info("Manual escalation cycle triggered", processed=report.processed)
        return report
