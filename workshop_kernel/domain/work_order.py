"""
Work order state machine (``workshop_kernel.domain.work_order``).

Responsibility
--------------
The single table of legal work order transitions: which status each action
starts from and lands on, which workshop role slots may perform it, and
what it does to the inventory ledger.  The lifecycle service reads its
guards and effects from here and nowhere else.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

State diagram::

    (none) --create--> PENDING --approve--> APPROVED --issue--> ISSUED
                          |                     |
                          +--reject--> REJECTED +--veto--> OC_VETOED

ISSUED, REJECTED and OC_VETOED are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from workshop_kernel.domain.audit import AuditRecordType
from workshop_kernel.domain.roles import WorkshopRole


class WorkOrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ISSUED = "issued"
    REJECTED = "rejected"
    OC_VETOED = "oc_vetoed"


class WorkOrderAction(str, Enum):
    CREATE = "create"
    APPROVE = "approve"
    REJECT = "reject"
    VETO = "veto"
    ISSUE = "issue"


class InventoryEffect(str, Enum):
    NONE = "none"
    DEBIT = "debit"
    CREDIT = "credit"


TERMINAL_STATUSES: frozenset[WorkOrderStatus] = frozenset({
    WorkOrderStatus.ISSUED,
    WorkOrderStatus.REJECTED,
    WorkOrderStatus.OC_VETOED,
})


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    ``from_status`` is None only for ``create``.  ``allowed_roles`` is an
    OR: holding any one of the slots in the order's workshop is enough.
    """
    action: WorkOrderAction
    from_status: WorkOrderStatus | None
    to_status: WorkOrderStatus
    allowed_roles: frozenset[WorkshopRole]
    inventory_effect: InventoryEffect
    audit_type: AuditRecordType
    reason_required: bool = False

    def permits_roles(self, roles: frozenset[WorkshopRole] | set[WorkshopRole]) -> bool:
        return bool(self.allowed_roles & set(roles))

    def applies_to(self, status: WorkOrderStatus | str | None) -> bool:
        if self.from_status is None:
            return status is None
        return status is not None and WorkOrderStatus(status) == self.from_status


TRANSITION_RULES: dict[WorkOrderAction, TransitionRule] = {
    WorkOrderAction.CREATE: TransitionRule(
        action=WorkOrderAction.CREATE,
        from_status=None,
        to_status=WorkOrderStatus.PENDING,
        allowed_roles=frozenset({WorkshopRole.INSPECTOR}),
        inventory_effect=InventoryEffect.NONE,
        audit_type=AuditRecordType.WORK_ORDER_CREATED,
    ),
    WorkOrderAction.APPROVE: TransitionRule(
        action=WorkOrderAction.APPROVE,
        from_status=WorkOrderStatus.PENDING,
        to_status=WorkOrderStatus.APPROVED,
        allowed_roles=frozenset({WorkshopRole.CAPTAIN, WorkshopRole.OC}),
        inventory_effect=InventoryEffect.DEBIT,
        audit_type=AuditRecordType.WORK_ORDER_APPROVED,
    ),
    WorkOrderAction.REJECT: TransitionRule(
        action=WorkOrderAction.REJECT,
        from_status=WorkOrderStatus.PENDING,
        to_status=WorkOrderStatus.REJECTED,
        allowed_roles=frozenset({WorkshopRole.CAPTAIN, WorkshopRole.OC}),
        inventory_effect=InventoryEffect.NONE,
        audit_type=AuditRecordType.WORK_ORDER_REJECTED,
        reason_required=True,
    ),
    WorkOrderAction.VETO: TransitionRule(
        action=WorkOrderAction.VETO,
        from_status=WorkOrderStatus.APPROVED,
        to_status=WorkOrderStatus.OC_VETOED,
        allowed_roles=frozenset({WorkshopRole.OC}),
        inventory_effect=InventoryEffect.CREDIT,
        audit_type=AuditRecordType.WORK_ORDER_VETOED,
        reason_required=True,
    ),
    WorkOrderAction.ISSUE: TransitionRule(
        action=WorkOrderAction.ISSUE,
        from_status=WorkOrderStatus.APPROVED,
        to_status=WorkOrderStatus.ISSUED,
        allowed_roles=frozenset({WorkshopRole.STORE_MAN}),
        inventory_effect=InventoryEffect.NONE,
        audit_type=AuditRecordType.WORK_ORDER_ISSUED,
    ),
}

# Status a created order lands in when auto-issue is switched on
AUTO_ISSUE_STATUS = WorkOrderStatus.ISSUED


def rule_for(action: WorkOrderAction | str) -> TransitionRule:
    return TRANSITION_RULES[WorkOrderAction(action)]


def is_terminal(status: WorkOrderStatus | str) -> bool:
    return WorkOrderStatus(status) in TERMINAL_STATUSES


def available_actions(
    status: WorkOrderStatus | str,
    roles: frozenset[WorkshopRole] | set[WorkshopRole],
) -> tuple[WorkOrderAction, ...]:
    """Actions the holder of ``roles`` may take on an order in ``status``."""
    return tuple(
        rule.action
        for rule in TRANSITION_RULES.values()
        if rule.from_status is not None
        and rule.applies_to(status)
        and rule.permits_roles(roles)
    )
