"""
Whole-transaction retry for store-reported serialization failures.

The lifecycle engine never retries anything itself: a lost race is a
business outcome.  A serialization failure (SQLSTATE 40001) or a deadlock
(40P01) is different: the database aborted the transaction before any
business decision was made, so running the whole unit of work again is
safe.  run_in_transaction() does exactly that and nothing more.
"""

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from workshop_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
RETRYABLE_SQLSTATES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED})


def sqlstate_of(exc: DBAPIError) -> str | None:
    """SQLSTATE of the driver error; psycopg2 calls it pgcode, psycopg 3 sqlstate."""
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, DBAPIError) and sqlstate_of(exc) in RETRYABLE_SQLSTATES


def run_in_transaction(
    session_factory: sessionmaker[Session] | Callable[[], Session],
    fn: Callable[[Session], T],
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
) -> T:
    """
    Run ``fn(session)`` in a fresh session and commit.

    On a retryable DBAPIError the transaction is rolled back and the whole
    call is repeated, up to ``max_attempts`` in total, sleeping
    ``backoff_seconds * attempt`` in between.  Every other exception (all
    WorkshopKernelError subclasses included) rolls back and propagates on
    the first attempt.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        session = session_factory()
        try:
            result = fn(session)
            session.commit()
            if attempt > 1:
                logger.info("transaction_retry_succeeded", extra={"attempt": attempt})
            return result
        except DBAPIError as exc:
            session.rollback()
            if not is_retryable(exc) or attempt >= max_attempts:
                logger.warning(
                    "transaction_rolled_back",
                    extra={"attempt": attempt, "sqlstate": sqlstate_of(exc)},
                )
                raise
            logger.warning(
                "transaction_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "sqlstate": sqlstate_of(exc),
                },
            )
            time.sleep(backoff_seconds * attempt)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
