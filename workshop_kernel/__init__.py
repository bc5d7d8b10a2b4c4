"""
Workshop Kernel

The work-order lifecycle and inventory settlement engine for the workshop
maintenance tracker:
- Role-gated work-order state machine (inspector, captain, OC, store-man)
- Atomic stock debit/credit against a per-(workshop, part) ledger
- Row-level locking for concurrent approvals and vetoes
- Append-only, hash-chained audit trail written inside the same transaction
"""

__version__ = "0.1.0"
