"""
WorkOrderService -- the work order lifecycle and inventory settlement engine.

Responsibility:
    Moves a parts request through the approval state machine while keeping
    the inventory ledger in step with it.  Every operation is one unit of
    work: the status check-and-update, the ledger debit or credit, and the
    audit records commit together or not at all.

Architecture position:
    Kernel > Services.  Reads guards and effects from
    ``domain.work_order.TRANSITION_RULES``; asks ``AssignmentOracle`` who
    holds which slot; moves stock through ``InventoryLedgerService``; writes
    through ``AuditorService.append(record, session)``.

Invariants enforced:
    - Checks run in a fixed order: the order exists, the actor holds an
      allowed slot in the order's workshop, the status permits the action,
      then stock sufficiency.  Nothing is written until all have passed.
    - Row locks are taken in one order: work order, ledger row, audit
      sequence counter.
    - The status flip is a compare-and-set
      (``UPDATE ... WHERE status = :expected``); a zero row count raises
      ConcurrentTransitionError.
    - approve debits exactly requested_quantity; veto credits exactly the
      same amount, so approve followed by veto restores the ledger.
    - Terminal orders are never touched again.

Failure modes:
    - NotFoundError subclasses, ActorNotAssignedError, InvalidTransitionError,
      ConcurrentTransitionError, InsufficientStockError, InvalidQuantityError,
      ReasonRequiredError.  All are terminal for the call.  When a service
      is used without auto_commit, the caller rolls back on any of them.
"""

from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from workshop_kernel.domain.audit import AuditRecordType
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.dtos import StockLevel, StockMovement, WorkOrderResult, WorkOrderSnapshot
from workshop_kernel.domain.policy import DEFAULT_POLICY, LifecyclePolicy
from workshop_kernel.domain.work_order import (
    AUTO_ISSUE_STATUS,
    InventoryEffect,
    TransitionRule,
    WorkOrderAction,
    WorkOrderStatus,
    rule_for,
)
from workshop_kernel.exceptions import (
    ConcurrentTransitionError,
    InvalidQuantityError,
    InvalidTransitionError,
    ReasonRequiredError,
    WorkOrderNotFoundError,
)
from workshop_kernel.logging_config import LogContext, get_logger
from workshop_kernel.models.work_order import WorkOrder
from workshop_kernel.models.workshop import UnitStatus
from workshop_kernel.selectors.reference_selector import ReferenceSelector
from workshop_kernel.services.assignment_oracle import AssignmentOracle
from workshop_kernel.services.auditor_service import AuditEntry, AuditorService
from workshop_kernel.services.base import BaseService
from workshop_kernel.services.inventory_ledger import InventoryLedgerService
from workshop_kernel.utils.ids import as_optional_uuid, as_uuid

logger = get_logger("services.work_order")

_MOVEMENT_RECORD_TYPES = {
    InventoryEffect.DEBIT: AuditRecordType.INVENTORY_DEBITED,
    InventoryEffect.CREDIT: AuditRecordType.INVENTORY_CREDITED,
}


class WorkOrderService(BaseService[WorkOrder]):
    """
    The five lifecycle operations: create, approve, reject, veto, issue.

    Each returns a ``WorkOrderResult`` (the order after the operation plus
    the part's stock level) or raises a typed error.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        policy: LifecyclePolicy | None = None,
        auto_commit: bool = False,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._policy = policy or DEFAULT_POLICY
        self._ledger = InventoryLedgerService(session, auditor=self._auditor, clock=self._clock)
        self._oracle = AssignmentOracle(session)
        self._references = ReferenceSelector(session)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(
        self,
        entry_id: UUID | str,
        actor_id: UUID | str,
        part_id: UUID | str | None = None,
        quantity: int = 0,
        notes: str | None = None,
    ) -> WorkOrderResult:
        """
        Open a work order against an entry.

        The order lands in PENDING, or in ISSUED when the policy switches
        auto-issue on.  No stock moves at creation either way.

        Raises:
            EntryNotFoundError, WorkshopNotFoundError, UnitNotFoundError,
            PartNotFoundError: unknown references.
            ActorNotAssignedError: actor is not the workshop's inspector.
            InvalidQuantityError: negative quantity, zero quantity with a
                part, or a quantity without a part.
        """
        entry_id = as_uuid(entry_id)
        actor_id = as_uuid(actor_id)
        part_id = as_optional_uuid(part_id)
        rule = rule_for(WorkOrderAction.CREATE)

        with self._unit_of_work("create"), LogContext.bind(actor_id=actor_id):
            entry = self._references.get_entry(entry_id)
            workshop = self._references.get_workshop(entry.workshop_id)
            unit = self._references.get_unit(entry.unit_id)
            if part_id is not None:
                self._references.get_part(part_id)

            with LogContext.bind(workshop_id=workshop.id):
                self._oracle.authorize(workshop, actor_id, rule)
                self._validate_quantity(part_id, quantity)

                now = self._clock.now()
                auto_issue = self._policy.auto_issue_on_create
                status = AUTO_ISSUE_STATUS if auto_issue else rule.to_status

                order = WorkOrder(
                    id=uuid4(),
                    entry_id=entry.id,
                    unit_id=unit.id,
                    workshop_id=workshop.id,
                    part_id=part_id,
                    requested_by_id=actor_id,
                    requested_quantity=quantity,
                    status=status.value,
                    requested_at=now,
                    notes=notes,
                )
                if auto_issue:
                    order.issued_by_id = actor_id
                    order.issued_at = now
                self.session.add(order)
                self.session.flush()

                payload = {
                    "status": status.value,
                    "part_id": str(part_id) if part_id else None,
                    "requested_quantity": quantity,
                    "auto_issued": auto_issue,
                }
                if auto_issue:
                    payload["previous_unit_status"] = UnitStatus(unit.status).value
                    unit.status = UnitStatus.UNDER_MAINTENANCE.value
                    payload["new_unit_status"] = UnitStatus.UNDER_MAINTENANCE.value
                    self.session.flush()

                self._auditor.append(
                    AuditEntry(
                        record_type=rule.audit_type,
                        actor_id=actor_id,
                        workshop_id=workshop.id,
                        unit_id=unit.id,
                        entry_id=entry.id,
                        work_order_id=order.id,
                        description=notes,
                        payload=payload,
                    ),
                    self.session,
                )

                logger.info(
                    "work_order_created",
                    extra={
                        "work_order_id": str(order.id),
                        "status": status.value,
                        "part_id": str(part_id) if part_id else None,
                        "requested_quantity": quantity,
                        "auto_issued": auto_issue,
                    },
                )
                return WorkOrderResult(
                    work_order=WorkOrderSnapshot.from_model(order),
                    stock=self._current_stock(order),
                )

    def _validate_quantity(self, part_id: UUID | None, quantity: int) -> None:
        if quantity < 0:
            raise InvalidQuantityError(quantity, "quantity cannot be negative")
        if part_id is not None and quantity == 0:
            raise InvalidQuantityError(quantity, "a part request needs a positive quantity")
        if part_id is None and quantity > 0 and self._policy.require_part_for_quantity:
            raise InvalidQuantityError(quantity, "a quantity needs a part")

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def approve(
        self,
        work_order_id: UUID | str,
        actor_id: UUID | str,
        notes: str | None = None,
    ) -> WorkOrderResult:
        """
        PENDING -> APPROVED by the workshop's captain or OC.

        Debits requested_quantity from the ledger when a part is attached
        and writes two audit records (transition, then stock movement).

        Raises:
            WorkOrderNotFoundError, ActorNotAssignedError,
            InvalidTransitionError, ConcurrentTransitionError,
            InsufficientStockError.
        """
        return self._transition(WorkOrderAction.APPROVE, work_order_id, actor_id, notes=notes)

    def reject(
        self,
        work_order_id: UUID | str,
        actor_id: UUID | str,
        reason: str,
    ) -> WorkOrderResult:
        """PENDING -> REJECTED by the captain or OC.  No stock moves."""
        return self._transition(WorkOrderAction.REJECT, work_order_id, actor_id, reason=reason)

    def veto(
        self,
        work_order_id: UUID | str,
        actor_id: UUID | str,
        reason: str,
    ) -> WorkOrderResult:
        """
        APPROVED -> OC_VETOED by the OC only.

        Credits back exactly the quantity approve debited.  An ISSUED order
        cannot be vetoed: the parts have physically left the store.
        """
        return self._transition(WorkOrderAction.VETO, work_order_id, actor_id, reason=reason)

    def issue(
        self,
        work_order_id: UUID | str,
        actor_id: UUID | str,
        notes: str | None = None,
    ) -> WorkOrderResult:
        """APPROVED -> ISSUED by the store-man.  Terminal; no stock moves."""
        return self._transition(WorkOrderAction.ISSUE, work_order_id, actor_id, notes=notes)

    def _transition(
        self,
        action: WorkOrderAction,
        work_order_id: UUID | str,
        actor_id: UUID | str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> WorkOrderResult:
        rule = rule_for(action)
        work_order_id = as_uuid(work_order_id)
        actor_id = as_uuid(actor_id)

        with self._unit_of_work(action.value), LogContext.bind(
            actor_id=actor_id, work_order_id=work_order_id
        ):
            order = self._lock_work_order(work_order_id)
            workshop = self._references.get_workshop(order.workshop_id)

            with LogContext.bind(workshop_id=workshop.id):
                self._oracle.authorize(workshop, actor_id, rule)

                if not rule.applies_to(order.status):
                    logger.warning(
                        "work_order_transition_refused",
                        extra={
                            "action": action.value,
                            "current_status": WorkOrderStatus(order.status).value,
                        },
                    )
                    raise InvalidTransitionError(
                        str(order.id), action.value, WorkOrderStatus(order.status).value
                    )

                if rule.reason_required and (reason is None or not reason.strip()):
                    raise ReasonRequiredError(action.value)
                if reason is not None:
                    reason = reason.strip() or None

                movement = self._move_stock(order, rule)

                now = self._clock.now()
                values = self._transition_values(rule, actor_id, now, reason, notes)
                self._compare_and_set(order, rule, values)

                self._record(order, rule, actor_id, reason or notes, movement)

                logger.info(
                    rule.audit_type.value,
                    extra={
                        "from_status": rule.from_status.value,
                        "to_status": rule.to_status.value,
                        "stock_delta": movement.delta if movement else 0,
                    },
                )
                return WorkOrderResult(
                    work_order=WorkOrderSnapshot.from_model(order),
                    stock=movement.stock if movement else self._current_stock(order),
                )

    def _lock_work_order(self, work_order_id: UUID) -> WorkOrder:
        order = self.session.execute(
            select(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        return order

    def _move_stock(self, order: WorkOrder, rule: TransitionRule) -> StockMovement | None:
        if order.part_id is None or order.requested_quantity == 0:
            return None
        if rule.inventory_effect == InventoryEffect.DEBIT:
            return self._ledger.debit(order.workshop_id, order.part_id, order.requested_quantity)
        if rule.inventory_effect == InventoryEffect.CREDIT:
            return self._ledger.credit(order.workshop_id, order.part_id, order.requested_quantity)
        return None

    @staticmethod
    def _transition_values(
        rule: TransitionRule,
        actor_id: UUID,
        now,
        reason: str | None,
        notes: str | None,
    ) -> dict:
        values: dict = {"status": rule.to_status.value}
        if rule.to_status == WorkOrderStatus.APPROVED:
            values.update(approved_by_id=actor_id, approved_at=now)
        elif rule.to_status in (WorkOrderStatus.REJECTED, WorkOrderStatus.OC_VETOED):
            values.update(
                rejected_by_id=actor_id,
                rejected_at=now,
                rejection_reason=reason,
            )
        elif rule.to_status == WorkOrderStatus.ISSUED:
            values.update(issued_by_id=actor_id, issued_at=now)
        if notes is not None:
            values["notes"] = notes
        return values

    def _compare_and_set(self, order: WorkOrder, rule: TransitionRule, values: dict) -> None:
        result = self.session.execute(
            update(WorkOrder)
            .where(
                WorkOrder.id == order.id,
                WorkOrder.status == rule.from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "work_order_transition_lost_race",
                extra={"action": rule.action.value, "expected_status": rule.from_status.value},
            )
            raise ConcurrentTransitionError(
                str(order.id), rule.action.value, rule.from_status.value
            )
        self.session.refresh(order)

    def _record(
        self,
        order: WorkOrder,
        rule: TransitionRule,
        actor_id: UUID,
        description: str | None,
        movement: StockMovement | None,
    ) -> None:
        context = {
            "actor_id": actor_id,
            "workshop_id": order.workshop_id,
            "unit_id": order.unit_id,
            "entry_id": order.entry_id,
            "work_order_id": order.id,
        }
        self._auditor.append(
            AuditEntry(
                record_type=rule.audit_type,
                description=description,
                payload={
                    "from_status": rule.from_status.value,
                    "to_status": rule.to_status.value,
                    "part_id": str(order.part_id) if order.part_id else None,
                    "requested_quantity": order.requested_quantity,
                },
                **context,
            ),
            self.session,
        )
        if movement is not None:
            self._auditor.append(
                AuditEntry(
                    record_type=_MOVEMENT_RECORD_TYPES[rule.inventory_effect],
                    payload=movement.as_payload(),
                    **context,
                ),
                self.session,
            )

    def _current_stock(self, order: WorkOrder) -> StockLevel | None:
        if order.part_id is None:
            return None
        return self._ledger.get_stock(order.workshop_id, order.part_id)
