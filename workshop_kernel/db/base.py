"""
Declarative base for every workshop model.

Primary keys are uuid4 values kept in a String(36) column so the same
schema runs on PostgreSQL and SQLite.  Nothing in this module may import
models, services, selectors or domain code.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON, TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in, UUID out; text in the database.  Binds also take the string
    form, which is validated on the way through."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or isinstance(value, UUID):
            return None if value is None else str(value)
        return str(UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    # Timestamps are declared with a zone; SQLite hands them back naive.
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        datetime: DateTime(timezone=True),
        int: BigInteger,
        dict[str, Any]: JSON,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds ``created_at``/``updated_at`` row bookkeeping.

    Both are filled by the database and are not business data: immutability
    checks on terminal work orders skip them.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
