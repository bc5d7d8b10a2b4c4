"""
Module: workshop_kernel.models.workshop
Responsibility: ORM persistence for the reference records the lifecycle
    engine reads: workshops (with their four role slots), units, entries
    (a unit's visit to a workshop) and spare parts.
Architecture position: Kernel > Models.  May import from db/base.py only.

The engine never writes these rows except for one side effect: when
auto-issue is switched on, creating a work order moves the unit to
UNDER_MAINTENANCE.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import TrackedBase, UUIDString


class UnitStatus(str, Enum):
    AVAILABLE = "available"
    IN_WORKSHOP = "in_workshop"
    UNDER_MAINTENANCE = "under_maintenance"
    COMPLETED = "completed"
    EXITED = "exited"


class Workshop(TrackedBase):
    """
    A maintenance workshop and its role slots.

    Each slot holds at most one actor id.  Actors are opaque identities
    issued by the authentication layer; there is no actor table here.
    """

    __tablename__ = "workshops"

    __table_args__ = (
        Index("idx_workshop_inspector", "inspector_id"),
        Index("idx_workshop_captain", "captain_id"),
        Index("idx_workshop_oc", "oc_id"),
        Index("idx_workshop_store_man", "store_man_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    inspector_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    captain_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    oc_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    store_man_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Workshop {self.name}>"


class Unit(TrackedBase):
    """A vehicle or piece of equipment that visits workshops."""

    __tablename__ = "units"

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'in_workshop', 'under_maintenance', "
            "'completed', 'exited')",
            name="ck_unit_status",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[UnitStatus] = mapped_column(
        String(20),
        default=UnitStatus.AVAILABLE.value,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Unit {self.name} status={self.status}>"


class Entry(TrackedBase):
    """A unit's visit to a workshop.  Work orders hang off an entry."""

    __tablename__ = "entries"

    __table_args__ = (
        Index("idx_entry_workshop", "workshop_id"),
        Index("idx_entry_unit", "unit_id"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    workshop_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workshops.id"),
        nullable=False,
    )

    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    exited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Entry unit={self.unit_id} workshop={self.workshop_id}>"


class SparePart(TrackedBase):
    __tablename__ = "spare_parts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    part_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="each")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SparePart {self.part_number}>"
