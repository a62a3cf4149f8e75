"""Run report returned by an escalation cycle."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RecipientRole(str, Enum):
    """Who a notice was addressed to."""

    INTERMEDIARY = "intermediary"
    ACCOUNTABLE = "accountable"
    INTERMEDIARY_CC = "intermediary_cc"


class RecipientResult(BaseModel):
    role: RecipientRole
    address: str
    delivered: bool


class ActionRecord(BaseModel):
    """A notice round that was dispatched for one work order."""

    request_id: str
    type: str
    tier: Optional[int] = None
    recipients: List[RecipientResult] = Field(default_factory=list)


class ErrorRecord(BaseModel):
    request_id: Optional[str] = None
    error: str


class SkipRecord(BaseModel):
    request_id: str
    reason: str


class RunReport(BaseModel):
    """Aggregate outcome of one escalation cycle."""

    success: bool = True
    scanned: int = 0
    processed: int = 0
    actions: List[ActionRecord] = Field(default_factory=list)
    errors: List[ErrorRecord] = Field(default_factory=list)
    skipped: List[SkipRecord] = Field(default_factory=list)
    timed_out: bool = False
    message: str = ""
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def failure(cls, error: str, started_at: Optional[datetime] = None) -> "RunReport":
        """Envelope for a cycle that could not load its candidate set."""
        return cls(
            success=False,
            error=error,
            message="Escalation cycle failed",
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    def errors_for(self, request_id: str) -> List[ErrorRecord]:
        return [entry for entry in self.errors if entry.request_id == request_id]

    def action_for(self, request_id: str) -> Optional[ActionRecord]:
        for entry in self.actions:
            if entry.request_id == request_id:
                return entry
        return None
