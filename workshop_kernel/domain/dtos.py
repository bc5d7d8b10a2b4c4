"""
DTOs -- immutable results handed back to callers.

Services never return ORM instances: every operation converts at the
boundary with ``from_model()`` so that callers cannot mutate (or lazily
load from) a row after the transaction that produced it has ended.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from workshop_kernel.domain.work_order import WorkOrderStatus, is_terminal

if TYPE_CHECKING:
    from workshop_kernel.models.inventory import InventoryLedgerEntry
    from workshop_kernel.models.work_order import WorkOrder


@dataclass(frozen=True)
class StockLevel:
    """Ledger quantity for one (workshop, part) pair at a point in time."""
    workshop_id: UUID
    part_id: UUID
    quantity: int
    min_quantity: int = 0

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_quantity

    @classmethod
    def from_model(cls, model: InventoryLedgerEntry) -> StockLevel:
        return cls(
            workshop_id=model.workshop_id,
            part_id=model.part_id,
            quantity=model.quantity,
            min_quantity=model.min_quantity,
        )


@dataclass(frozen=True)
class WorkOrderSnapshot:
    id: UUID
    entry_id: UUID
    unit_id: UUID
    workshop_id: UUID
    part_id: UUID | None
    requested_by_id: UUID
    requested_quantity: int
    status: WorkOrderStatus
    requested_at: datetime
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    issued_by_id: UUID | None = None
    issued_at: datetime | None = None
    notes: str | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @classmethod
    def from_model(cls, model: WorkOrder) -> WorkOrderSnapshot:
        return cls(
            id=model.id,
            entry_id=model.entry_id,
            unit_id=model.unit_id,
            workshop_id=model.workshop_id,
            part_id=model.part_id,
            requested_by_id=model.requested_by_id,
            requested_quantity=model.requested_quantity,
            status=WorkOrderStatus(model.status),
            requested_at=model.requested_at,
            approved_by_id=model.approved_by_id,
            approved_at=model.approved_at,
            rejected_by_id=model.rejected_by_id,
            rejected_at=model.rejected_at,
            rejection_reason=model.rejection_reason,
            issued_by_id=model.issued_by_id,
            issued_at=model.issued_at,
            notes=model.notes,
        )


@dataclass(frozen=True)
class WorkOrderResult:
    """Outcome of a lifecycle operation.

    ``stock`` is the ledger level after the operation for orders with a
    part attached, and None for part-less orders.
    """
    work_order: WorkOrderSnapshot
    stock: StockLevel | None = None

    @property
    def status(self) -> WorkOrderStatus:
        return self.work_order.status


@dataclass(frozen=True)
class WorkOrderDetail:
    """A work order as seen by a viewer, with the part's current stock."""
    work_order: WorkOrderSnapshot
    stock: StockLevel | None = None


@dataclass(frozen=True)
class WorkOrderPage:
    items: tuple[WorkOrderSnapshot, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class StockMovement:
    """One change to a ledger row: the quantity before and after."""
    workshop_id: UUID
    part_id: UUID
    delta: int
    previous_quantity: int
    quantity: int
    min_quantity: int = 0

    @property
    def stock(self) -> StockLevel:
        return StockLevel(
            workshop_id=self.workshop_id,
            part_id=self.part_id,
            quantity=self.quantity,
            min_quantity=self.min_quantity,
        )

    def as_payload(self) -> dict:
        return {
            "part_id": str(self.part_id),
            "delta": self.delta,
            "previous_stock": self.previous_quantity,
            "new_stock": self.quantity,
        }
