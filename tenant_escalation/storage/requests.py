"""Work-order repository backed by SQLAlchemy."""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_escalation.escalation.types import ExpectedState, RequestUpdate, ServiceRequest
from tenant_escalation.exceptions import ConcurrentUpdateError, RepositoryError
from tenant_escalation.models.database import async_session_factory
from tenant_escalation.models.work_order import WorkOrder, WorkOrderStatus
from tenant_escalation.utils.logging import get_logger

logger = get_logger(__name__)


def to_service_request(work_order: WorkOrder) -> ServiceRequest:
    """Detach an ORM row into an immutable snapshot."""
    return ServiceRequest(
        id=work_order.id,
        status=work_order.status,
        created_at=work_order.created_at,
        escalation_count=work_order.escalation_count or 0,
        last_escalation_at=work_order.last_escalation_at,
        requester_ref=work_order.reported_by,
        building_ref=work_order.building_id,
        unit_ref=work_order.unit_id,
        notes=work_order.notes,
        title=work_order.title or "",
        description=work_order.description,
        category=work_order.category,
        priority=work_order.priority,
    )


class SQLAlchemyRequestRepository:
    """Reads candidate work orders and records escalation progress."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory or async_session_factory

    async def list_requests_by_status(self, status: WorkOrderStatus) -> List[ServiceRequest]:
        """All work orders currently in ``status``, oldest first."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(WorkOrder)
                    .where(WorkOrder.status == status)
                    .order_by(WorkOrder.created_at)
                )
                return [to_service_request(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Error listing work orders", status=status.value, error=str(e))
            raise RepositoryError(f"Failed to list work orders: {e}") from e

    async def update_request(
        self,
        request_id: str,
        changes: RequestUpdate,
        expected: Optional[ExpectedState] = None,
    ) -> ServiceRequest:
        """Write escalation fields for a single work order.

        The counter is never allowed to move backwards. When ``expected`` is
        given the write only applies if the stored escalation state still
        matches it, otherwise ``ConcurrentUpdateError`` is raised.
        """
        values = {
            "escalation_count": changes.escalation_count,
            "last_escalation_at": changes.last_escalation_at,
        }
        if changes.notes is not None:
            values["notes"] = changes.notes

        stmt = (
            update(WorkOrder)
            .where(WorkOrder.id == request_id)
            .where(WorkOrder.escalation_count <= changes.escalation_count)
        )
        if expected is not None:
            stmt = stmt.where(WorkOrder.escalation_count == expected.escalation_count)
            if expected.last_escalation_at is None:
                stmt = stmt.where(WorkOrder.last_escalation_at.is_(None))
            else:
                stmt = stmt.where(WorkOrder.last_escalation_at == expected.last_escalation_at)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    stmt.values(**values).execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    if await session.get(WorkOrder, request_id) is None:
                        raise RepositoryError(f"Work order {request_id} not found")
                    raise ConcurrentUpdateError(request_id)

                await session.commit()
                work_order = await session.get(WorkOrder, request_id)
                return to_service_request(work_order)
        except SQLAlchemyError as e:
            logger.error("Error updating work order", request_id=request_id, error=str(e))
            raise RepositoryError(f"Failed to update work order {request_id}: {e}") from e
