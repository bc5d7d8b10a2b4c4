"""Named counter rows backing SequenceService."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import Base


class SequenceCounter(Base):
    """
    One row per named sequence.

    The row is locked FOR UPDATE while a value is allocated, which is what
    makes the audit chain strictly ordered under concurrent writers.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
