"""
BaseService -- abstract base for kernel services that write.

Services receive a SQLAlchemy ``Session`` and persist with
``session.flush()``.  Whoever opened the transaction commits it: a request
handler through ``session_scope()``, ``run_in_transaction()``, or a test
fixture.  The lifecycle and ledger services accept ``auto_commit=True`` for
callers that want a single operation to be its own transaction.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generic, Iterator, TypeVar

from sqlalchemy.orm import Session

from workshop_kernel.db.base import Base
from workshop_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    def __init__(self, session: Session, auto_commit: bool = False):
        self.session = session
        self._auto_commit = auto_commit

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        """
        Wrap one public operation.

        With auto_commit, commit on success and roll back on any exception.
        Without it, leave both to the caller.
        """
        if not self._auto_commit:
            yield
            return
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
            )
            raise
