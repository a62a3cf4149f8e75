"""Resolution of the parties responsible for a work order."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_escalation.escalation.types import Contact, DirectoryRecord, DisplayInfo
from tenant_escalation.exceptions import DirectoryError
from tenant_escalation.models.database import async_session_factory
from tenant_escalation.models.directory import Building, Resident, Unit
from tenant_escalation.utils.logging import get_logger
from tenant_escalation.utils.validation import normalize_email

logger = get_logger(__name__)


def build_directory_record(
    resident: Optional[Resident],
    building: Optional[Building],
    unit: Optional[Unit],
) -> DirectoryRecord:
    """Combine directory rows into the parties used for escalation.

    The managing agent comes from the resident record. The owner is the
    resident's investor, falling back to the unit owner. Malformed addresses
    are treated as missing.
    """
    intermediary = None
    accountable_email = None

    if resident:
        agent_email = normalize_email(resident.managing_agent_email)
        if agent_email:
            intermediary = Contact(email=agent_email, name=resident.managing_agent_contact_name)
        accountable_email = normalize_email(resident.investor_email)

    if not accountable_email and unit:
        accountable_email = normalize_email(unit.owner_email)

    return DirectoryRecord(
        intermediary=intermediary,
        accountable=Contact(email=accountable_email) if accountable_email else None,
        display=DisplayInfo(
            building_name=building.name if building else None,
            unit_label=unit.unit_number if unit else None,
            requester_name=(resident.full_name or None) if resident else None,
            intermediary_company=resident.managing_agent_company if resident else None,
        ),
    )


class SQLAlchemyDirectoryResolver:
    """Looks up resident, building and unit rows for a work order."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory or async_session_factory

    async def resolve_parties(
        self,
        requester_ref: Optional[str],
        building_ref: Optional[str],
        unit_ref: Optional[str],
    ) -> DirectoryRecord:
        try:
            async with self.session_factory() as session:
                resident = None
                if requester_ref:
                    result = await session.execute(
                        select(Resident)
                        .where(func.lower(Resident.email) == requester_ref.strip().lower())
                        .limit(1)
                    )
                    resident = result.scalars().first()

                building = await session.get(Building, building_ref) if building_ref else None
                unit = await session.get(Unit, unit_ref) if unit_ref else None
        except SQLAlchemyError as e:
            logger.error("Error resolving directory records", requester=requester_ref, error=str(e))
            raise DirectoryError(f"Failed to resolve parties: {e}") from e

        if resident is None:
            logger.info("Resident not found for work order", requester=requester_ref)

        return build_directory_record(resident, building, unit)
