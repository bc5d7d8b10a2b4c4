"""
Write guards on finished history.

A work order in ISSUED, REJECTED or OC_VETOED records something that has
already happened in the store room, so once stored in one of those states
none of its business columns may change.  Work orders are never deleted at
all: cancelling is what the terminal states are for.  Audit records are
append-only from the first flush.

The guards are ``before_update``/``before_delete`` mapper events, so they
run inside ``session.flush()`` and abort it with ImmutabilityViolationError
before any SQL is emitted.  They only see ORM writes.  Status transitions
go through a Core ``UPDATE ... WHERE status = :expected`` in the lifecycle
service, which can never match a terminal row.

    Model         Update                      Delete
    WorkOrder     refused once terminal       refused
    AuditRecord   refused                     refused

create_tables() registers the guards.  Tests that have to forge a broken
row go around the ORM with Core statements rather than switching the
guards off.
"""

from sqlalchemy import event, inspect, select
from sqlalchemy.orm.attributes import get_history

from workshop_kernel.exceptions import ImmutabilityViolationError
from workshop_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Row metadata, not business data
_METADATA_FIELDS = frozenset({"updated_at"})


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_work_order_immutability(mapper, connection, target):
    """
    Prevent updates to work orders that were already terminal.

    A status change *into* a terminal value is allowed (that is the
    transition itself); any change once the stored status is terminal is not.
    """
    from workshop_kernel.domain.work_order import is_terminal
    from workshop_kernel.models.work_order import WorkOrder

    if not isinstance(target, WorkOrder):
        return

    status_history = get_history(target, "status")
    if status_history.deleted:
        stored_status = status_history.deleted[0]
    elif not status_history.added:
        stored_status = target.status
    else:
        # Prior value was never loaded; ask the database
        table = WorkOrder.__table__
        stored_status = connection.execute(
            select(table.c.status).where(table.c.id == target.id)
        ).scalar_one_or_none()

    if stored_status is None or not is_terminal(stored_status):
        return

    for attr in inspect(target).attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "WorkOrder",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a {stored_status} work order",
                field=attr.key,
            )


def _check_work_order_delete(mapper, connection, target):
    from workshop_kernel.models.work_order import WorkOrder

    if not isinstance(target, WorkOrder):
        return

    _block(
        "WorkOrder",
        target.id,
        "DELETE",
        "Work orders are never deleted; reject or veto instead",
    )


def _refuse_audit_update(mapper, connection, target):
    _block("AuditRecord", target.id, "UPDATE", "Audit records are append-only")


def _refuse_audit_delete(mapper, connection, target):
    _block("AuditRecord", target.id, "DELETE", "Audit records cannot be deleted")


def _listeners():
    from workshop_kernel.models.audit_record import AuditRecord
    from workshop_kernel.models.work_order import WorkOrder

    return (
        (WorkOrder, "before_update", _check_work_order_immutability),
        (WorkOrder, "before_delete", _check_work_order_delete),
        (AuditRecord, "before_update", _refuse_audit_update),
        (AuditRecord, "before_delete", _refuse_audit_delete),
    )


def register_immutability_listeners():
    """Attach the guards.  Calling it again is a no-op."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners():
    """Detach the guards.  Test teardown only."""
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)


def immutability_listeners_registered() -> bool:
    return all(event.contains(*listener) for listener in _listeners())
