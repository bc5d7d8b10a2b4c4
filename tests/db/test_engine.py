"""Engine and session helper tests.

These commit for real, so they request ``pg_session_factory`` for its
teardown cleanup.
"""

import pytest
from sqlalchemy import select

from tests.factories import build_part
from workshop_kernel.db.engine import get_session_factory, is_postgres, session_scope
from workshop_kernel.models.workshop import SparePart


def _part_numbers(factory) -> set[str]:
    with factory() as s:
        return set(s.execute(select(SparePart.part_number)).scalars().all())


class TestSessionScope:
    def test_commits_on_exit(self, pg_session_factory):
        with session_scope() as s:
            part = build_part(s, "Radiator cap")
            number = part.part_number

        assert number in _part_numbers(pg_session_factory)

    def test_rolls_back_on_error(self, pg_session_factory):
        number = "P-never-stored"
        with pytest.raises(RuntimeError):
            with session_scope() as s:
                s.add(SparePart(name="Ghost", part_number=number, unit_of_measure="each"))
                s.flush()
                raise RuntimeError("boom")

        assert number not in _part_numbers(pg_session_factory)


def test_backend_detection(db_engine):
    assert is_postgres() == (db_engine.dialect.name == "postgresql")


def test_session_factory_binds_the_engine(db_engine):
    with get_session_factory()() as s:
        assert s.get_bind().url == db_engine.url
