"""
Strictly increasing numbers for the audit chain.

Each named sequence is one row in ``sequence_counters``.  Allocating a
value locks that row until the caller's transaction ends, which is what
serializes audit writers.  The increment commits or rolls back together
with the record that used it, so a rollback hands the number back and the
committed values have no gaps.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    AUDIT_RECORD = "audit_record"

    def __init__(self, session: Session):
        self._session = session

    def _select(self, name: str, *, lock: bool) -> SequenceCounter | None:
        stmt = select(SequenceCounter).where(SequenceCounter.name == name)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()

    def _create_counter(self, name: str) -> SequenceCounter | None:
        """Insert the counter at 0 inside a savepoint.  None if another
        transaction inserted it first."""
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=name, current_value=0)
                self._session.add(counter)
        except IntegrityError:
            logger.debug("sequence_counter_race", extra={"sequence_name": name})
            return None
        return counter

    def next_value(self, name: str) -> int:
        """Increment ``name`` under a row lock and return the new value (>= 1)."""
        counter = self._select(name, lock=True) or self._create_counter(name)
        if counter is None:
            counter = self._select(name, lock=True)
            if counter is None:
                raise RuntimeError(f"sequence counter {name!r} vanished")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        counter = self._select(name, lock=False)
        return None if counter is None else counter.current_value
