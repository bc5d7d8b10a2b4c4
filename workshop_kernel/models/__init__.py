"""ORM models for the workshop kernel."""

from workshop_kernel.models.audit_record import AuditRecord
from workshop_kernel.models.inventory import InventoryLedgerEntry
from workshop_kernel.models.sequence import SequenceCounter
from workshop_kernel.models.work_order import WorkOrder
from workshop_kernel.models.workshop import Entry, SparePart, Unit, UnitStatus, Workshop

__all__ = [
    "AuditRecord",
    "Entry",
    "InventoryLedgerEntry",
    "SequenceCounter",
    "SparePart",
    "Unit",
    "UnitStatus",
    "WorkOrder",
    "Workshop",
]
