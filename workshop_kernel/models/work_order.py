"""
Module: workshop_kernel.models.work_order
Responsibility: ORM persistence for work orders: a request to allocate a
    quantity of a spare part to a unit during one workshop entry.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ enums only.

Invariants enforced:
    - requested_quantity >= 0, and > 0 whenever a part is attached
      (check constraints).
    - status is one of the WorkOrderStatus values (check constraint).
    - Terminal work orders are immutable and no work order is ever deleted
      (ORM listeners in db/immutability.py).
    - workshop_id never changes: it is copied from the entry at creation and
      role slots are looked up through it at every transition.

Reject and veto share the rejected_by_id / rejected_at / rejection_reason
columns; the status tells them apart.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import TrackedBase, UUIDString
from workshop_kernel.domain.work_order import WorkOrderStatus, is_terminal

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in WorkOrderStatus)


class WorkOrder(TrackedBase):
    __tablename__ = "work_orders"

    __table_args__ = (
        CheckConstraint(
            "requested_quantity >= 0",
            name="ck_work_order_quantity_non_negative",
        ),
        CheckConstraint(
            "part_id IS NULL OR requested_quantity > 0",
            name="ck_work_order_part_quantity",
        ),
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_work_order_status",
        ),
        Index("idx_work_order_workshop_status", "workshop_id", "status"),
        Index("idx_work_order_entry", "entry_id"),
        Index("idx_work_order_unit", "unit_id"),
        Index("idx_work_order_requested_at", "requested_at"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entries.id"),
        nullable=False,
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

    part_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("spare_parts.id"),
        nullable=True,
    )

    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[WorkOrderStatus] = mapped_column(
        String(16),
        default=WorkOrderStatus.PENDING.value,
        nullable=False,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Approval
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Rejection or OC veto
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Issue
    issued_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def has_part(self) -> bool:
        return self.part_id is not None

    def __repr__(self) -> str:
        return f"<WorkOrder {self.id} status={self.status}>"
