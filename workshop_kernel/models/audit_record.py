"""
Module: workshop_kernel.models.audit_record
Responsibility: ORM persistence for the append-only, hash-chained audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners).
    - seq is unique and strictly increasing, allocated under a row lock by
      SequenceService.
    - hash = H(seq | record_type | actor_id | work_order_id | payload_hash |
      prev_hash).  Validated by AuditorService.validate_chain().

Every row is written in the same transaction as the mutation it documents;
a rolled-back transition leaves no audit record behind.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import Base, UUIDString
from workshop_kernel.domain.audit import AuditRecordType


class AuditRecord(Base):
    __tablename__ = "audit_records"

    __table_args__ = (
        Index("idx_audit_work_order", "work_order_id"),
        Index("idx_audit_workshop", "workshop_id"),
        Index("idx_audit_type", "record_type"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    record_type: Mapped[AuditRecordType] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Context; any may be absent depending on the record type
    workshop_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    unit_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    work_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null only for the first record in the chain
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def __repr__(self) -> str:
        return f"<AuditRecord #{self.seq} {self.record_type}>"
