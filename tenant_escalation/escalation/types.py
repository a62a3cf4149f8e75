"""Domain types and collaborator contracts for the escalation engine."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from tenant_escalation.models.work_order import WorkOrderStatus

IN_SCOPE_STATUS = WorkOrderStatus.AWAITING_RESPONSIBLE_PARTY


@dataclass(frozen=True)
class ServiceRequest:
    """Snapshot of a work order as read by the engine."""
    id: str
    status: WorkOrderStatus
    created_at: datetime
    escalation_count: int = 0
    last_escalation_at: Optional[datetime] = None
    requester_ref: Optional[str] = None
    building_ref: Optional[str] = None
    unit_ref: Optional[str] = None
    notes: Optional[str] = None

    # Message content only
    title: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None


@dataclass(frozen=True)
class Contact:
    """A party that can receive a notice."""
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class DisplayInfo:
    """Labels used when composing messages. Never used for policy decisions."""
    building_name: Optional[str] = None
    unit_label: Optional[str] = None
    requester_name: Optional[str] = None
    intermediary_company: Optional[str] = None


@dataclass(frozen=True)
class DirectoryRecord:
    """Parties relevant to escalating one work order."""
    intermediary: Optional[Contact] = None
    accountable: Optional[Contact] = None
    display: DisplayInfo = DisplayInfo()


@dataclass(frozen=True)
class RequestUpdate:
    """Escalation fields written back after a notice goes out."""
    escalation_count: int
    last_escalation_at: datetime
    notes: Optional[str] = None


@dataclass(frozen=True)
class ExpectedState:
    """Escalation state the caller read, used to guard a conditional write."""
    escalation_count: int
    last_escalation_at: Optional[datetime]


class RequestRepository(Protocol):
    async def list_requests_by_status(self, status: WorkOrderStatus) -> List[ServiceRequest]:
        ...

    async def update_request(
        self,
        request_id: str,
        changes: RequestUpdate,
        expected: Optional[ExpectedState] = None,
    ) -> ServiceRequest:
        ...


class DirectoryResolver(Protocol):
    async def resolve_parties(
        self,
        requester_ref: Optional[str],
        building_ref: Optional[str],
        unit_ref: Optional[str],
    ) -> DirectoryRecord:
        ...


class NotificationSender(Protocol):
    async def send(self, from_label: str, to_address: str, subject: str, body: str) -> None:
        ...
