"""
InventoryLedgerService -- the per-(workshop, part) stock counter.

Responsibility:
    Debits and credits on behalf of work order transitions, plus stock
    administration: first stocking of a part, manual adjustments, and
    stock/low-stock reads.

Architecture position:
    Kernel > Services.  debit()/credit() are called only by
    WorkOrderService inside its transaction; they neither commit nor write
    audit records (the lifecycle service records the movement with the
    work order's context).  stock_part()/adjust() are standalone operations
    and audit themselves.

Invariants enforced:
    - quantity never goes below zero.  The row is read under
      ``SELECT ... FOR UPDATE`` and the check happens before any write;
      the ``quantity >= 0`` check constraint backs it up.
    - Exactly one ledger row per (workshop, part).

Failure modes:
    - InsufficientStockError: debit larger than the locked quantity, or a
      debit against a part never stocked in the workshop (available 0).
    - InventoryNotFoundError: credit or adjustment of a missing row.
    - DuplicateLedgerEntryError: stocking a part that is already stocked.
    - InvalidQuantityError: non-positive debit/credit amounts, negative
      stock levels, zero adjustments.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workshop_kernel.domain.audit import AuditRecordType
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.dtos import StockLevel, StockMovement
from workshop_kernel.exceptions import (
    DuplicateLedgerEntryError,
    InsufficientStockError,
    InvalidQuantityError,
    InventoryNotFoundError,
    ReasonRequiredError,
)
from workshop_kernel.logging_config import LogContext, get_logger
from workshop_kernel.models.inventory import InventoryLedgerEntry
from workshop_kernel.selectors.reference_selector import ReferenceSelector
from workshop_kernel.services.auditor_service import AuditEntry, AuditorService
from workshop_kernel.services.base import BaseService
from workshop_kernel.utils.ids import as_uuid

logger = get_logger("services.inventory_ledger")


class InventoryLedgerService(BaseService[InventoryLedgerEntry]):
    def __init__(
        self,
        session: Session,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        auto_commit: bool = False,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    def lock_entry(self, workshop_id: UUID, part_id: UUID) -> InventoryLedgerEntry | None:
        """Read the ledger row FOR UPDATE; the lock lasts until the
        transaction ends."""
        return self.session.execute(
            select(InventoryLedgerEntry)
            .where(
                InventoryLedgerEntry.workshop_id == workshop_id,
                InventoryLedgerEntry.part_id == part_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_stock(self, workshop_id: UUID | str, part_id: UUID | str) -> StockLevel | None:
        entry = self.session.execute(
            select(InventoryLedgerEntry).where(
                InventoryLedgerEntry.workshop_id == as_uuid(workshop_id),
                InventoryLedgerEntry.part_id == as_uuid(part_id),
            )
        ).scalar_one_or_none()
        return StockLevel.from_model(entry) if entry is not None else None

    def low_stock(self, workshop_id: UUID | str) -> list[StockLevel]:
        """Rows at or below their advisory minimum."""
        entries = self.session.execute(
            select(InventoryLedgerEntry)
            .where(
                InventoryLedgerEntry.workshop_id == as_uuid(workshop_id),
                InventoryLedgerEntry.quantity <= InventoryLedgerEntry.min_quantity,
            )
            .order_by(InventoryLedgerEntry.quantity, InventoryLedgerEntry.part_id)
        ).scalars().all()
        return [StockLevel.from_model(e) for e in entries]

    # ------------------------------------------------------------------
    # Movements on behalf of work orders
    # ------------------------------------------------------------------

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise InvalidQuantityError(amount, "movement amount must be positive")

    def debit(self, workshop_id: UUID, part_id: UUID, amount: int) -> StockMovement:
        """
        Take ``amount`` out of stock.

        Raises:
            InsufficientStockError: the row is missing or holds less than
                ``amount``.  Nothing is written.
        """
        self._require_positive(amount)
        entry = self.lock_entry(workshop_id, part_id)
        available = entry.quantity if entry is not None else 0
        if entry is None or available < amount:
            logger.warning(
                "inventory_debit_refused",
                extra={
                    "part_id": str(part_id),
                    "requested": amount,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                workshop_id=str(workshop_id),
                part_id=str(part_id),
                requested=amount,
                available=available,
            )

        previous = entry.quantity
        entry.quantity = previous - amount
        self.session.flush()

        logger.info(
            "inventory_debited",
            extra={
                "part_id": str(part_id),
                "amount": amount,
                "previous_stock": previous,
                "new_stock": entry.quantity,
            },
        )
        return StockMovement(
            workshop_id=entry.workshop_id,
            part_id=entry.part_id,
            delta=-amount,
            previous_quantity=previous,
            quantity=entry.quantity,
            min_quantity=entry.min_quantity,
        )

    def credit(self, workshop_id: UUID, part_id: UUID, amount: int) -> StockMovement:
        """
        Put ``amount`` back into stock.  Unconditional once the row exists.

        Raises:
            InventoryNotFoundError: the part was never stocked here.
        """
        self._require_positive(amount)
        entry = self.lock_entry(workshop_id, part_id)
        if entry is None:
            raise InventoryNotFoundError(str(workshop_id), str(part_id))

        previous = entry.quantity
        entry.quantity = previous + amount
        self.session.flush()

        logger.info(
            "inventory_credited",
            extra={
                "part_id": str(part_id),
                "amount": amount,
                "previous_stock": previous,
                "new_stock": entry.quantity,
            },
        )
        return StockMovement(
            workshop_id=entry.workshop_id,
            part_id=entry.part_id,
            delta=amount,
            previous_quantity=previous,
            quantity=entry.quantity,
            min_quantity=entry.min_quantity,
        )

    # ------------------------------------------------------------------
    # Stock administration
    # ------------------------------------------------------------------

    def stock_part(
        self,
        workshop_id: UUID | str,
        part_id: UUID | str,
        quantity: int,
        *,
        actor_id: UUID | str,
        min_quantity: int = 0,
        location: str | None = None,
        notes: str | None = None,
    ) -> StockLevel:
        """
        Create the ledger row for a part's first stocking in a workshop.

        Raises:
            WorkshopNotFoundError, PartNotFoundError: unknown references.
            InvalidQuantityError: negative quantity or minimum.
            DuplicateLedgerEntryError: the part is already stocked here.
        """
        workshop_id = as_uuid(workshop_id)
        part_id = as_uuid(part_id)
        actor_id = as_uuid(actor_id)

        with self._unit_of_work("stock_part"), LogContext.bind(
            actor_id=actor_id, workshop_id=workshop_id
        ):
            references = ReferenceSelector(self.session)
            references.get_workshop(workshop_id)
            references.get_part(part_id)

            if quantity < 0:
                raise InvalidQuantityError(quantity, "stock quantity cannot be negative")
            if min_quantity < 0:
                raise InvalidQuantityError(min_quantity, "minimum quantity cannot be negative")

            if self.get_stock(workshop_id, part_id) is not None:
                raise DuplicateLedgerEntryError(str(workshop_id), str(part_id))

            entry = InventoryLedgerEntry(
                workshop_id=workshop_id,
                part_id=part_id,
                quantity=quantity,
                min_quantity=min_quantity,
                location=location,
                notes=notes,
            )
            savepoint = self.session.begin_nested()
            try:
                self.session.add(entry)
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                # A concurrent stocking of the same pair got there first
                savepoint.rollback()
                raise DuplicateLedgerEntryError(str(workshop_id), str(part_id)) from None

            self._auditor.append(
                AuditEntry(
                    record_type=AuditRecordType.INVENTORY_STOCKED,
                    actor_id=actor_id,
                    workshop_id=workshop_id,
                    description=f"Part stocked with quantity {quantity}",
                    payload={
                        "part_id": str(part_id),
                        "quantity": quantity,
                        "min_quantity": min_quantity,
                        "location": location,
                    },
                ),
                self.session,
            )

            logger.info(
                "inventory_stocked",
                extra={"part_id": str(part_id), "quantity": quantity},
            )
            return StockLevel.from_model(entry)

    def adjust(
        self,
        workshop_id: UUID | str,
        part_id: UUID | str,
        delta: int,
        *,
        actor_id: UUID | str,
        reason: str,
    ) -> StockLevel:
        """
        Add (positive delta) or consume (negative delta) stock outside any
        work order.

        Raises:
            ReasonRequiredError: blank reason.
            InvalidQuantityError: zero delta.
            InventoryNotFoundError: the part was never stocked here.
            InsufficientStockError: the result would be negative.
        """
        workshop_id = as_uuid(workshop_id)
        part_id = as_uuid(part_id)
        actor_id = as_uuid(actor_id)

        with self._unit_of_work("adjust"), LogContext.bind(
            actor_id=actor_id, workshop_id=workshop_id
        ):
            if not reason or not reason.strip():
                raise ReasonRequiredError("adjust stock")
            if delta == 0:
                raise InvalidQuantityError(delta, "adjustment must change the quantity")

            entry = self.lock_entry(workshop_id, part_id)
            if entry is None:
                raise InventoryNotFoundError(str(workshop_id), str(part_id))

            previous = entry.quantity
            if previous + delta < 0:
                raise InsufficientStockError(
                    workshop_id=str(workshop_id),
                    part_id=str(part_id),
                    requested=-delta,
                    available=previous,
                )

            entry.quantity = previous + delta
            self.session.flush()

            movement = StockMovement(
                workshop_id=workshop_id,
                part_id=part_id,
                delta=delta,
                previous_quantity=previous,
                quantity=entry.quantity,
                min_quantity=entry.min_quantity,
            )
            self._auditor.append(
                AuditEntry(
                    record_type=AuditRecordType.INVENTORY_ADJUSTED,
                    actor_id=actor_id,
                    workshop_id=workshop_id,
                    description=reason.strip(),
                    payload=movement.as_payload(),
                ),
                self.session,
            )

            logger.info(
                "inventory_adjusted",
                extra={
                    "part_id": str(part_id),
                    "delta": delta,
                    "previous_stock": previous,
                    "new_stock": entry.quantity,
                },
            )
            return movement.stock
