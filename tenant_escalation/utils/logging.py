"""Structured logging configuration using structlog."""

import logging
import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

from tenant_escalation.config import settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters={
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            ),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or __name__)


class CorrelationContextManager:
    """Context manager for correlation ID tracking."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.tokens = None

    def __enter__(self):
        self.tokens = structlog.contextvars.bind_contextvars(
            correlation_id=self.correlation_id
        )
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.tokens:
            structlog.contextvars.reset_contextvars(**self.tokens)


def log_escalation_event(
    logger: FilteringBoundLogger,
    request_id: str,
    action: str,
    recipient_role: str,
    status: str,
    tier: Optional[int] = None,
    **kwargs: Any
) -> None:
    """Log escalation notices with consistent format."""
    label = f"{action} (tier {tier})" if tier is not None else action
    logger.info(
        f"Escalation {status}: {label} to {recipient_role}",
        request_id=request_id,
        escalation_action=action,
        escalation_tier=tier,
        recipient_role=recipient_role,
        escalation_status=status,
        **kwargs
    )


def log_external_api_call(
    logger: FilteringBoundLogger,
    service: str,
    operation: str,
    success: bool,
    duration_ms: float,
    **kwargs: Any
) -> None:
    """Log external API calls with consistent format."""
    level = "info" if success else "error"
    getattr(logger, level)(
        f"{service} API call: {operation}",
        external_service=service,
        operation=operation,
        success=success,
        duration_ms=duration_ms,
        **kwargs
    )
