"""Read side.  Selectors query through the caller's session and never write
to it; they may import db/, models/ and domain/ but not services/."""

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workshop_kernel.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseSelector(Generic[RowT]):
    def __init__(self, session: Session):
        self.session = session
