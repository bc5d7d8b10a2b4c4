"""
Module: workshop_kernel.models.inventory
Responsibility: ORM persistence for the per-(workshop, part) stock counter.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (workshop_id, part_id) (unique constraint).
    - quantity >= 0 (check constraint; the ledger service refuses any debit
      that would cross zero before the database has to).
    - min_quantity >= 0.  Advisory only: dropping below it flags the row as
      low stock but never blocks a debit.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import TrackedBase, UUIDString


class InventoryLedgerEntry(TrackedBase):
    __tablename__ = "inventory_ledger"

    __table_args__ = (
        UniqueConstraint("workshop_id", "part_id", name="uq_inventory_workshop_part"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("min_quantity >= 0", name="ck_inventory_min_quantity_non_negative"),
        Index("idx_inventory_workshop", "workshop_id"),
    )

    workshop_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workshops.id"),
        nullable=False,
    )

    part_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("spare_parts.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_quantity

    def __repr__(self) -> str:
        return (
            f"<InventoryLedgerEntry workshop={self.workshop_id} "
            f"part={self.part_id} qty={self.quantity}>"
        )
