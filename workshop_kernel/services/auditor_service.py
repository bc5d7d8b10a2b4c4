"""
AuditorService -- append-only, hash-chained audit log.

Responsibility:
    Writes one AuditRecord per state transition or stock mutation, inside
    the transaction that performs the mutation, and answers trace and
    chain-validation queries.

Architecture position:
    Kernel > Services.  Called by WorkOrderService and
    InventoryLedgerService.

Invariants enforced:
    - The write joins the caller's transaction: ``append(record, session)``
      takes the session explicitly and only flushes.  A rollback of the
      mutation removes its audit records with it.
    - seq comes from SequenceService's locked counter row.
    - hash = H(seq | record_type | actor_id | work_order_id | payload_hash |
      prev_hash); prev_hash is the hash of the record with the previous seq.

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored hash, a
      payload hash or a prev_hash link does not match.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workshop_kernel.domain.audit import AuditRecordType
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.exceptions import AuditChainBrokenError
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.audit_record import AuditRecord
from workshop_kernel.services.sequence_service import SequenceService
from workshop_kernel.utils.hashing import hash_audit_record, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditEntry:
    """What a caller wants recorded.  Sequence, time and hashes are added
    by the sink."""

    record_type: AuditRecordType
    actor_id: UUID
    workshop_id: UUID | None = None
    unit_id: UUID | None = None
    entry_id: UUID | None = None
    work_order_id: UUID | None = None
    description: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    record_type: AuditRecordType
    occurred_at: datetime
    actor_id: UUID
    description: str | None
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit records of one work order, in sequence order."""

    work_order_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def record_types(self) -> tuple[AuditRecordType, ...]:
        return tuple(e.record_type for e in self.entries)

    @property
    def last_record_type(self) -> AuditRecordType | None:
        return self.entries[-1].record_type if self.entries else None


class AuditorService:
    """
    The audit log sink.

    ``session`` given to the constructor is only a default for the query
    methods; ``append`` always names its transaction.
    """

    def __init__(
        self,
        session: Session | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()

    def _resolve(self, session: Session | None) -> Session:
        resolved = session or self._session
        if resolved is None:
            raise ValueError("AuditorService query needs a session")
        return resolved

    @staticmethod
    def _get_last_hash(session: Session) -> str | None:
        return session.execute(
            select(AuditRecord.hash)
            .order_by(AuditRecord.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(self, record: AuditEntry, session: Session) -> AuditRecord:
        """
        Append ``record`` to the chain inside ``session``'s transaction.

        Locks the audit sequence counter until that transaction ends, so
        call it after every other lock the operation needs.
        """
        seq = SequenceService(session).next_value(SequenceService.AUDIT_RECORD)
        prev_hash = self._get_last_hash(session)

        payload = to_json_safe(record.payload)
        payload_hash = hash_payload(payload)
        record_type = AuditRecordType(record.record_type)

        record_hash = hash_audit_record(
            seq=seq,
            record_type=record_type.value,
            actor_id=str(record.actor_id),
            work_order_id=str(record.work_order_id) if record.work_order_id else None,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_record = AuditRecord(
            seq=seq,
            record_type=record_type.value,
            actor_id=record.actor_id,
            workshop_id=record.workshop_id,
            unit_id=record.unit_id,
            entry_id=record.entry_id,
            work_order_id=record.work_order_id,
            description=record.description,
            payload=payload,
            occurred_at=self._clock.now(),
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=record_hash,
        )
        session.add(audit_record)
        session.flush()

        logger.info(
            "audit_record_created",
            extra={
                "record_type": record_type.value,
                "seq": seq,
                "work_order_id": str(record.work_order_id) if record.work_order_id else None,
            },
        )
        return audit_record

    # Queries

    def trace_for_work_order(
        self,
        work_order_id: UUID,
        session: Session | None = None,
    ) -> AuditTrace:
        session = self._resolve(session)
        records = session.execute(
            select(AuditRecord)
            .where(AuditRecord.work_order_id == work_order_id)
            .order_by(AuditRecord.seq)
        ).scalars().all()

        return AuditTrace(
            work_order_id=work_order_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=r.seq,
                    record_type=AuditRecordType(r.record_type),
                    occurred_at=r.occurred_at,
                    actor_id=r.actor_id,
                    description=r.description,
                    payload=dict(r.payload or {}),
                    hash=r.hash,
                )
                for r in records
            ),
        )

    def records_for_workshop(
        self,
        workshop_id: UUID,
        limit: int = 100,
        session: Session | None = None,
    ) -> list[AuditRecord]:
        """Most recent records touching a workshop, newest first."""
        session = self._resolve(session)
        return list(
            session.execute(
                select(AuditRecord)
                .where(AuditRecord.workshop_id == workshop_id)
                .order_by(AuditRecord.seq.desc())
                .limit(limit)
            ).scalars().all()
        )

    def validate_chain(self, session: Session | None = None) -> bool:
        """
        Recompute every record's payload hash and chained hash.

        Returns True for an intact (or empty) chain.

        Raises:
            AuditChainBrokenError: at the first record that does not match.
        """
        session = self._resolve(session)
        records = session.execute(
            select(AuditRecord).order_by(AuditRecord.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for record in records:
            if record.prev_hash != prev_hash:
                self._broken(record, prev_hash or "None", record.prev_hash or "None")

            payload_hash = hash_payload(record.payload or {})
            if record.payload_hash != payload_hash:
                self._broken(record, payload_hash, record.payload_hash)

            expected_hash = hash_audit_record(
                seq=record.seq,
                record_type=AuditRecordType(record.record_type).value,
                actor_id=str(record.actor_id),
                work_order_id=str(record.work_order_id) if record.work_order_id else None,
                payload_hash=record.payload_hash,
                prev_hash=record.prev_hash,
            )
            if record.hash != expected_hash:
                self._broken(record, expected_hash, record.hash)

            prev_hash = record.hash

        logger.info("audit_chain_valid", extra={"record_count": len(records)})
        return True

    @staticmethod
    def _broken(record: AuditRecord, expected: str, actual: str) -> None:
        logger.critical(
            "audit_chain_broken",
            extra={"audit_record_id": str(record.id), "seq": record.seq},
        )
        raise AuditChainBrokenError(str(record.id), expected, actual)
