"""
Typed Exception Hierarchy for the Workshop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a CLI, a batch job) must be able to tell
"someone else already approved this" apart from "you don't have permission"
apart from "there isn't enough stock" without parsing message strings.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        service.approve(work_order_id, actor_id)
    except InsufficientStockError as e:
        api_response(409, code=e.code, requested=e.requested, available=e.available)
    except InvalidStateError as e:
        api_response(409, code=e.code)
    except ForbiddenError as e:
        api_response(403, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkshopKernelError (base)
    |
    +-- NotFoundError
    |   +-- WorkOrderNotFoundError
    |   +-- EntryNotFoundError
    |   +-- WorkshopNotFoundError
    |   +-- UnitNotFoundError
    |   +-- PartNotFoundError
    |   +-- InventoryNotFoundError
    |
    +-- ForbiddenError
    |   +-- ActorNotAssignedError
    |
    +-- InvalidStateError
    |   +-- InvalidTransitionError
    |   +-- ConcurrentTransitionError
    |
    +-- InsufficientStockError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- ReasonRequiredError
    |   +-- DuplicateLedgerEntryError
    |   +-- InvalidIdentifierError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | WORK_ORDER_NOT_FOUND        | Work order ID doesn't exist
                | ENTRY_NOT_FOUND             | Entry (visit record) doesn't exist
                | WORKSHOP_NOT_FOUND          | Workshop doesn't exist
                | UNIT_NOT_FOUND              | Unit doesn't exist
                | PART_NOT_FOUND              | Spare part doesn't exist
                | INVENTORY_NOT_FOUND         | No ledger row for (workshop, part)
----------------|-----------------------------|-----------------------------------------
Forbidden       | ACTOR_NOT_ASSIGNED          | Actor lacks the role slot in workshop
----------------|-----------------------------|-----------------------------------------
Invalid state   | INVALID_TRANSITION          | Status does not permit the transition
                | CONCURRENT_TRANSITION       | Lost the race to another transition
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Debit would drive quantity negative
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Negative, or zero with a part attached
                | REASON_REQUIRED             | Reject/veto without a reason
                | DUPLICATE_LEDGER_ENTRY      | Part already stocked in workshop
                | INVALID_IDENTIFIER          | Id is not a UUID
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a terminal order / audit record

===============================================================================
PROPAGATION
===============================================================================

All business errors are terminal for the call.  The engine never retries a
lost race: ConcurrentTransitionError is a legitimate outcome and subclasses
InvalidStateError so callers that only care about "wrong state" catch both.
Store-level serialization failures and deadlocks are NOT kernel errors; they
surface as SQLAlchemy DBAPIError and are retried (whole transaction) by
``workshop_kernel.services.retry.run_in_transaction``.
===============================================================================
"""


class WorkshopKernelError(Exception):
    """
    Base exception for all workshop kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKSHOP_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(WorkshopKernelError):
    """Base exception for missing referenced records."""

    code: str = "NOT_FOUND"


class WorkOrderNotFoundError(NotFoundError):
    """Work order with given ID was not found."""

    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: str):
        self.work_order_id = work_order_id
        super().__init__(f"Work order not found: {work_order_id}")


class EntryNotFoundError(NotFoundError):
    """Entry (workshop visit record) with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: {entry_id}")


class WorkshopNotFoundError(NotFoundError):
    """Workshop with given ID was not found."""

    code: str = "WORKSHOP_NOT_FOUND"

    def __init__(self, workshop_id: str):
        self.workshop_id = workshop_id
        super().__init__(f"Workshop not found: {workshop_id}")


class UnitNotFoundError(NotFoundError):
    """Unit with given ID was not found."""

    code: str = "UNIT_NOT_FOUND"

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"Unit not found: {unit_id}")


class PartNotFoundError(NotFoundError):
    """Spare part with given ID was not found."""

    code: str = "PART_NOT_FOUND"

    def __init__(self, part_id: str):
        self.part_id = part_id
        super().__init__(f"Spare part not found: {part_id}")


class InventoryNotFoundError(NotFoundError):
    """No ledger row exists for the (workshop, part) pair."""

    code: str = "INVENTORY_NOT_FOUND"

    def __init__(self, workshop_id: str, part_id: str):
        self.workshop_id = workshop_id
        self.part_id = part_id
        super().__init__(
            f"No inventory for part {part_id} in workshop {workshop_id}"
        )


# Authorization exceptions


class ForbiddenError(WorkshopKernelError):
    """Base exception for role/assignment failures."""

    code: str = "FORBIDDEN"


class ActorNotAssignedError(ForbiddenError):
    """
    Actor does not hold any of the role slots required for the action.

    Raised identically whether the actor holds no slot at all or holds
    the slot in a different workshop.
    """

    code: str = "ACTOR_NOT_ASSIGNED"

    def __init__(self, actor_id: str, workshop_id: str, action: str, required_roles: tuple[str, ...]):
        self.actor_id = actor_id
        self.workshop_id = workshop_id
        self.action = action
        self.required_roles = required_roles
        super().__init__(
            f"Actor {actor_id} is not assigned as {' or '.join(required_roles)} "
            f"of workshop {workshop_id} (action: {action})"
        )


# State exceptions


class InvalidStateError(WorkshopKernelError):
    """Base exception for operations attempted from a disallowed status."""

    code: str = "INVALID_STATE"


class InvalidTransitionError(InvalidStateError):
    """The work order's current status does not permit the transition."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, work_order_id: str, action: str, current_status: str):
        self.work_order_id = work_order_id
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} work order {work_order_id} "
            f"(current status: {current_status})"
        )


class ConcurrentTransitionError(InvalidStateError):
    """
    The work order moved out of the expected status between the read and
    the compare-and-set update.  Another transaction won the race.
    """

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, work_order_id: str, action: str, expected_status: str):
        self.work_order_id = work_order_id
        self.action = action
        self.expected_status = expected_status
        super().__init__(
            f"Work order {work_order_id} is no longer {expected_status}; "
            f"{action} lost to a concurrent transition"
        )


# Stock exceptions


class InsufficientStockError(WorkshopKernelError):
    """A debit would drive the ledger quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, workshop_id: str, part_id: str, requested: int, available: int):
        self.workshop_id = workshop_id
        self.part_id = part_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient inventory for part {part_id} in workshop {workshop_id} "
            f"(requested: {requested}, available: {available})"
        )


# Validation exceptions


class ValidationError(WorkshopKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is negative, or zero while a part is attached."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class ReasonRequiredError(ValidationError):
    """Reject, veto and stock adjustments require a non-empty reason."""

    code: str = "REASON_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A non-empty reason is required to {action}")


class DuplicateLedgerEntryError(ValidationError):
    """The part is already stocked in this workshop."""

    code: str = "DUPLICATE_LEDGER_ENTRY"

    def __init__(self, workshop_id: str, part_id: str):
        self.workshop_id = workshop_id
        self.part_id = part_id
        super().__init__(
            f"Part {part_id} is already stocked in workshop {workshop_id}"
        )


class InvalidIdentifierError(ValidationError):
    """An id argument is neither a UUID nor its string form."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, value: object):
        self.value = str(value)
        super().__init__(f"Not a valid identifier: {value!r}")


# Audit exceptions


class AuditError(WorkshopKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_record_id: str, expected_hash: str, actual_hash: str):
        self.audit_record_id = audit_record_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_record_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability exceptions


class ImmutabilityError(WorkshopKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Audit records are immutable from creation; work orders are immutable
    once terminal and are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
