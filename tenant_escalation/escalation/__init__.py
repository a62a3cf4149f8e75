"""Escalation engine components for tenant work orders."""

from .engine import EscalationEngine
from .policy import (
    FINAL_TO_ACCOUNTABLE,
    NO_ACTION,
    ActionKind,
    EscalationAction,
    EscalationPolicy,
    evaluate,
)
from .report import RunReport
from .scheduler import EscalationScheduler

__all__ = [
    "EscalationEngine",
    "EscalationScheduler",
    "EscalationPolicy",
    "EscalationAction",
    "ActionKind",
    "NO_ACTION",
    "FINAL_TO_ACCOUNTABLE",
    "RunReport",
    "evaluate",
]
