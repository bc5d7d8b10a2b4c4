"""Kernel services: lifecycle engine, ledger, audit sink, oracle, retry."""

from workshop_kernel.services.assignment_oracle import AssignmentOracle
from workshop_kernel.services.auditor_service import AuditEntry, AuditorService, AuditTrace
from workshop_kernel.services.inventory_ledger import InventoryLedgerService
from workshop_kernel.services.retry import run_in_transaction
from workshop_kernel.services.sequence_service import SequenceService
from workshop_kernel.services.work_order_service import WorkOrderService

__all__ = [
    "AssignmentOracle",
    "AuditEntry",
    "AuditTrace",
    "AuditorService",
    "InventoryLedgerService",
    "SequenceService",
    "WorkOrderService",
    "run_in_transaction",
]
