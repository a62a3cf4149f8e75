"""Work order model for tenant-reported maintenance requests."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class WorkOrderStatus(str, Enum):
    """Work order status enumeration."""

    OPEN = "open"
    AWAITING_RESPONSIBLE_PARTY = "awaiting_responsible_party"  # tenant reported, awaiting agent
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkOrder(Base):
    """Work order for a maintenance issue reported by a resident."""

    __tablename__ = "work_orders"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Request details
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    priority: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[WorkOrderStatus] = mapped_column(
        SQLEnum(WorkOrderStatus),
        default=WorkOrderStatus.OPEN,
        index=True
    )

    # Directory references
    reported_by: Mapped[Optional[str]] = mapped_column(String(255), index=True)  # resident email
    building_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    # Escalation tracking
    escalation_count: Mapped[int] = mapped_column(Integer, default=0)
    last_escalation_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<WorkOrder(id={self.id}, status='{self.status}', "
            f"escalation_count={self.escalation_count})>"
        )
