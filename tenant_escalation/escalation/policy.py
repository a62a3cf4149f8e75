"""Escalation policy: decides which notice, if any, is due for a work order.

The policy is a pure function of the evaluation instant and the work order's
escalation state. It never reads a clock, so evaluating the same request twice
at the same instant yields the same action, and evaluating a request whose
state already reflects a notice yields ``NONE`` until a full interval has
passed again.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from tenant_escalation.escalation.types import IN_SCOPE_STATUS, ServiceRequest

REMINDER_INTERVAL_DAYS = 3
MAX_REMINDERS = 3


class ActionKind(str, Enum):
    """Kinds of escalation action."""

    NONE = "none"
    REMINDER = "reminder"
    FINAL_TO_ACCOUNTABLE = "final_to_accountable"


@dataclass(frozen=True)
class EscalationAction:
    """Action selected for one work order in one evaluation pass."""
    kind: ActionKind
    tier: Optional[int] = None

    @classmethod
    def reminder(cls, tier: int) -> "EscalationAction":
        return cls(ActionKind.REMINDER, tier)

    @property
    def is_none(self) -> bool:
        return self.kind == ActionKind.NONE


NO_ACTION = EscalationAction(ActionKind.NONE)
FINAL_TO_ACCOUNTABLE = EscalationAction(ActionKind.FINAL_TO_ACCOUNTABLE)


@dataclass(frozen=True)
class EscalationPolicy:
    """Tunable constants of the reminder ladder."""
    reminder_interval_days: int = REMINDER_INTERVAL_DAYS
    max_reminders: int = MAX_REMINDERS

    @classmethod
    def from_settings(cls, settings) -> "EscalationPolicy":
        return cls(
            reminder_interval_days=settings.ESCALATION_REMINDER_INTERVAL_DAYS,
            max_reminders=settings.ESCALATION_MAX_REMINDERS,
        )


DEFAULT_POLICY = EscalationPolicy()


def as_utc(value: datetime) -> datetime:
    """Convert to UTC, reading naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_whole_days(now: datetime, since: datetime) -> int:
    """Whole days between two instants, rounded toward negative infinity."""
    return (as_utc(now) - as_utc(since)) // timedelta(days=1)


def reference_time(request: ServiceRequest) -> datetime:
    """The instant the current interval is measured from."""
    return request.last_escalation_at or request.created_at


def evaluate(
    now: datetime,
    request: ServiceRequest,
    policy: EscalationPolicy = DEFAULT_POLICY,
) -> EscalationAction:
    """Return the escalation action due for ``request`` at ``now``."""
    if request.status != IN_SCOPE_STATUS:
        return NO_ACTION

    if elapsed_whole_days(now, reference_time(request)) < policy.reminder_interval_days:
        return NO_ACTION

    if request.escalation_count < policy.max_reminders:
        return EscalationAction.reminder(request.escalation_count + 1)

    return FINAL_TO_ACCOUNTABLE
