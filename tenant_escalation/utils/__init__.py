"""Utility modules for the tenant work-order escalation service."""

from .logging import CorrelationContextManager, get_logger, setup_logging
from .validation import normalize_email, sanitize_input, validate_email

__all__ = [
    "CorrelationContextManager",
    "get_logger",
    "setup_logging",
    "normalize_email",
    "sanitize_input",
    "validate_email",
]
