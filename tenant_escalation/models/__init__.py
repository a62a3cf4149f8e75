"""Database models for the tenant work-order escalation service."""

from .database import Base, create_tables, get_db_session
from .directory import Building, Resident, Unit
from .work_order import WorkOrder, WorkOrderStatus

__all__ = [
    "Base",
    "create_tables",
    "get_db_session",
    "Building",
    "Resident",
    "Unit",
    "WorkOrder",
    "WorkOrderStatus",
]
