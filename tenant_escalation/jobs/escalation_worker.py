"""One-shot escalation job for cron or other external schedulers."""

import asyncio
import sys
from typing import Optional

from tenant_escalation.escalation.engine import EscalationEngine
from tenant_escalation.models.database import create_tables
from tenant_escalation.utils.logging import CorrelationContextManager, get_logger, setup_logging

logger = get_logger(__name__)


async def run(engine: Optional[EscalationEngine] = None) -> int:
    """Run a single escalation cycle and return a process exit code."""
    with CorrelationContextManager() as correlation_id:
        logger.info("Starting escalation worker job", correlation_id=correlation_id)

        if engine is None:
            await create_tables()
            engine = EscalationEngine()

        report = await engine.run_cycle()

        if not report.success:
            logger.error(
                "Escalation worker job failed",
                correlation_id=correlation_id,
                error=report.error
            )
            return 1

        logger.info(
            "Escalation worker job completed",
            correlation_id=correlation_id,
            scanned=report.scanned,
            processed=report.processed,
            error_count=len(report.errors),
            timed_out=report.timed_out
        )
        return 0


def main() -> int:
    """Console entry point."""
    setup_logging()
    return asyncio.run(run())


if __name__ == "__main__":
    sys.exit(main())
