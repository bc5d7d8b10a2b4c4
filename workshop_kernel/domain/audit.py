"""Audit record types written by the kernel."""

from enum import Enum


class AuditRecordType(str, Enum):
    """
    Every state transition and every stock mutation produces one record of
    one of these types, in the same transaction as the mutation.
    """

    # Work order lifecycle
    WORK_ORDER_CREATED = "work_order_created"
    WORK_ORDER_APPROVED = "work_order_approved"
    WORK_ORDER_REJECTED = "work_order_rejected"
    WORK_ORDER_VETOED = "work_order_vetoed"
    WORK_ORDER_ISSUED = "work_order_issued"

    # Stock mutations
    INVENTORY_DEBITED = "inventory_debited"
    INVENTORY_CREDITED = "inventory_credited"
    INVENTORY_STOCKED = "inventory_stocked"
    INVENTORY_ADJUSTED = "inventory_adjusted"

    # Reference data side effects
    UNIT_STATUS_CHANGED = "unit_status_changed"
