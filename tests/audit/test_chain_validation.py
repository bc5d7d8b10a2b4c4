"""
Audit chain tests.

The audit log is hash-chained: each record's hash covers its own content
and the previous record's hash.  These tests write through the real
services, then tamper with rows through Core statements (which bypass the
ORM immutability listeners) and check that validate_chain() notices.
"""

from uuid import uuid4

import pytest
from sqlalchemy import delete, select, update

from tests.factories import audit_count
from workshop_kernel.domain.audit import AuditRecordType
from workshop_kernel.exceptions import AuditChainBrokenError
from workshop_kernel.models.audit_record import AuditRecord
from workshop_kernel.services.auditor_service import AuditEntry, AuditorService
from workshop_kernel.services.sequence_service import SequenceService
from workshop_kernel.utils.hashing import hash_audit_record, hash_payload


def _entry(actor_id=None, **kwargs) -> AuditEntry:
    return AuditEntry(
        record_type=kwargs.pop("record_type", AuditRecordType.INVENTORY_ADJUSTED),
        actor_id=actor_id or uuid4(),
        **kwargs,
    )


def _records(session) -> list[AuditRecord]:
    session.expire_all()
    return list(session.execute(select(AuditRecord).order_by(AuditRecord.seq)).scalars().all())


@pytest.fixture
def three_records(session, auditor_service):
    work_order_id = uuid4()
    for n in range(3):
        auditor_service.append(
            _entry(work_order_id=work_order_id, payload={"n": n}),
            session,
        )
    return work_order_id


class TestChainStructure:
    def test_sequence_and_links(self, session, three_records):
        records = _records(session)

        assert [r.seq for r in records] == [1, 2, 3]
        assert records[0].is_genesis
        assert records[1].prev_hash == records[0].hash
        assert records[2].prev_hash == records[1].hash

    def test_hash_is_reproducible_from_columns(self, session, three_records):
        record = _records(session)[1]

        assert record.payload_hash == hash_payload(record.payload)
        assert record.hash == hash_audit_record(
            seq=record.seq,
            record_type=record.record_type,
            actor_id=str(record.actor_id),
            work_order_id=str(record.work_order_id),
            payload_hash=record.payload_hash,
            prev_hash=record.prev_hash,
        )

    def test_payload_stored_as_plain_json(self, session, auditor_service):
        part_id = uuid4()
        record = auditor_service.append(
            _entry(payload={"part_id": part_id, "status": AuditRecordType.INVENTORY_DEBITED}),
            session,
        )
        assert record.payload == {"part_id": str(part_id), "status": "inventory_debited"}

    def test_occurred_at_from_clock(self, session, auditor_service, deterministic_clock):
        record = auditor_service.append(_entry(), session)
        assert record.occurred_at == deterministic_clock.now()

    def test_empty_chain_is_valid(self, auditor_service):
        assert auditor_service.validate_chain() is True

    def test_intact_chain_is_valid(self, auditor_service, three_records):
        assert auditor_service.validate_chain() is True

    def test_sequence_counter_tracks_last_seq(self, session, three_records):
        assert SequenceService(session).current_value(SequenceService.AUDIT_RECORD) == 3


class TestTransactionality:
    def test_rolled_back_append_leaves_nothing(self, session, auditor_service, three_records):
        session.commit()

        auditor_service.append(_entry(), session)
        assert audit_count(session) == 4
        session.rollback()

        assert audit_count(session) == 3
        # the rolled-back sequence value is handed out again
        record = auditor_service.append(_entry(), session)
        assert record.seq == 4
        assert auditor_service.validate_chain() is True
        session.commit()
        assert [r.seq for r in _records(session)] == [1, 2, 3, 4]


class TestTamperDetection:
    def test_payload_edit(self, session, auditor_service, three_records):
        target = _records(session)[1]
        session.execute(
            update(AuditRecord.__table__)
            .where(AuditRecord.__table__.c.id == target.id)
            .values(payload={"n": 99})
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor_service.validate_chain()
        assert exc_info.value.audit_record_id == str(target.id)
        assert exc_info.value.code == "AUDIT_CHAIN_BROKEN"

    def test_payload_and_payload_hash_edit(self, session, auditor_service, three_records):
        target = _records(session)[1]
        forged = {"n": 99}
        session.execute(
            update(AuditRecord.__table__)
            .where(AuditRecord.__table__.c.id == target.id)
            .values(payload=forged, payload_hash=hash_payload(forged))
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor_service.validate_chain()

    def test_actor_edit(self, session, auditor_service, three_records):
        target = _records(session)[0]
        session.execute(
            update(AuditRecord.__table__)
            .where(AuditRecord.__table__.c.id == target.id)
            .values(actor_id=str(uuid4()))
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor_service.validate_chain()

    def test_deleted_record(self, session, auditor_service, three_records):
        target_id = _records(session)[1].id
        session.execute(
            delete(AuditRecord.__table__).where(AuditRecord.__table__.c.id == target_id)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor_service.validate_chain()
        # the break shows at the record after the gap
        assert exc_info.value.audit_record_id != str(target_id)

    def test_break_is_logged_as_critical(self, session, auditor_service, captured_logs, three_records):
        target = _records(session)[2]
        session.execute(
            update(AuditRecord.__table__)
            .where(AuditRecord.__table__.c.id == target.id)
            .values(hash="0" * 64)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor_service.validate_chain()

        broken = [r for r in captured_logs() if r["message"] == "audit_chain_broken"]
        assert broken[0]["level"] == "CRITICAL"
        assert broken[0]["seq"] == 3


class TestQueries:
    def test_trace_for_work_order(self, session, auditor_service, three_records):
        auditor_service.append(_entry(work_order_id=uuid4()), session)

        trace = auditor_service.trace_for_work_order(three_records)

        assert trace.work_order_id == three_records
        assert [e.payload["n"] for e in trace.entries] == [0, 1, 2]
        assert [e.seq for e in trace.entries] == sorted(e.seq for e in trace.entries)

    def test_trace_for_unknown_order_is_empty(self, auditor_service):
        trace = auditor_service.trace_for_work_order(uuid4())
        assert trace.is_empty
        assert trace.last_record_type is None

    def test_records_for_workshop(self, session, auditor_service):
        workshop_id = uuid4()
        for n in range(4):
            auditor_service.append(_entry(workshop_id=workshop_id, payload={"n": n}), session)
        auditor_service.append(_entry(workshop_id=uuid4()), session)

        records = auditor_service.records_for_workshop(workshop_id, limit=3)

        assert [r.payload["n"] for r in records] == [3, 2, 1]

    def test_query_needs_a_session(self):
        with pytest.raises(ValueError):
            AuditorService().trace_for_work_order(uuid4())

    def test_explicit_session_overrides_default(self, session, deterministic_clock, three_records):
        auditor = AuditorService(clock=deterministic_clock)
        assert len(auditor.trace_for_work_order(three_records, session=session).entries) == 3
