"""Directory models: residents, buildings and units."""

import uuid
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Building(Base):
    """A managed building."""

    __tablename__ = "buildings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[Optional[str]] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<Building(id={self.id}, name='{self.name}')>"


class Unit(Base):
    """A unit within a building."""

    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    building_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    unit_number: Mapped[Optional[str]] = mapped_column(String(50))
    owner_email: Mapped[Optional[str]] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, unit_number='{self.unit_number}')>"


class Resident(Base):
    """A resident together with the parties responsible for their unit."""

    __tablename__ = "residents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    building_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    # Managing agent (intermediary)
    managing_agent_email: Mapped[Optional[str]] = mapped_column(String(255))
    managing_agent_contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    managing_agent_company: Mapped[Optional[str]] = mapped_column(String(255))

    # Investor / owner (accountable party)
    investor_email: Mapped[Optional[str]] = mapped_column(String(255))

    @property
    def full_name(self) -> str:
        """Display name built from first and last name."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<Resident(id={self.id}, email='{self.email}')>"
