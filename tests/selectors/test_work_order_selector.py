"""
WorkOrderSelector tests.

Tests cover:
- get(): stock alongside the order, part-less orders, unknown ids
- Viewer visibility by role slot, the store room seeing APPROVED only
- list(): filters, newest-first ordering, pagination bounds
"""

from uuid import uuid4

import pytest

from tests.factories import build_crew, put_in_stock
from workshop_kernel.domain.work_order import WorkOrderStatus
from workshop_kernel.exceptions import ActorNotAssignedError, ValidationError, WorkOrderNotFoundError


@pytest.fixture
def orders(work_order_service, deterministic_clock, crew, stocked_part):
    """Three orders a minute apart: pending, approved, rejected (oldest first)."""
    created = []
    for _ in range(3):
        created.append(
            work_order_service.create(
                crew.entry.id, crew.inspector_id, part_id=stocked_part.id, quantity=1
            ).work_order
        )
        deterministic_clock.advance(60)

    pending, approved, rejected = created
    work_order_service.approve(approved.id, crew.captain_id)
    work_order_service.reject(rejected.id, crew.oc_id, reason="not required")
    return pending, approved, rejected


class TestGet:
    def test_with_stock(self, work_order_selector, crew, stocked_part, orders):
        _, approved, _ = orders

        detail = work_order_selector.get(approved.id)

        assert detail.work_order.id == approved.id
        assert detail.work_order.status == WorkOrderStatus.APPROVED
        assert detail.stock.part_id == stocked_part.id
        assert detail.stock.quantity == 9

    def test_partless_order_has_no_stock(self, work_order_service, work_order_selector, crew):
        order = work_order_service.create(crew.entry.id, crew.inspector_id).work_order
        assert work_order_selector.get(order.id).stock is None

    def test_unknown(self, work_order_selector):
        with pytest.raises(WorkOrderNotFoundError):
            work_order_selector.get(uuid4())

    @pytest.mark.parametrize("attr", ["inspector_id", "captain_id", "oc_id"])
    def test_full_slots_see_every_status(self, work_order_selector, crew, orders, attr):
        for order in orders:
            assert work_order_selector.get(order.id, viewer_id=getattr(crew, attr)).work_order.id == order.id

    def test_store_man_sees_approved_only(self, work_order_selector, crew, orders):
        pending, approved, rejected = orders

        assert work_order_selector.get(approved.id, viewer_id=crew.store_man_id).work_order.id == approved.id
        for hidden in (pending, rejected):
            with pytest.raises(ActorNotAssignedError):
                work_order_selector.get(hidden.id, viewer_id=crew.store_man_id)

    def test_store_man_who_is_also_captain_sees_all(self, session, work_order_selector, crew, orders):
        crew.workshop.captain_id = crew.store_man_id
        session.commit()

        pending, _, _ = orders
        assert work_order_selector.get(pending.id, viewer_id=crew.store_man_id).work_order.id == pending.id

    def test_unassigned_viewer(self, session, work_order_selector, deterministic_clock, orders):
        other = build_crew(session, deterministic_clock)
        with pytest.raises(ActorNotAssignedError) as exc_info:
            work_order_selector.get(orders[0].id, viewer_id=other.captain_id)
        assert exc_info.value.action == "view"


class TestList:
    def test_newest_first(self, work_order_selector, orders):
        pending, approved, rejected = orders

        page = work_order_selector.list()

        assert [o.id for o in page.items] == [rejected.id, approved.id, pending.id]
        assert page.total == 3

    def test_status_filter(self, work_order_selector, orders):
        page = work_order_selector.list(status=WorkOrderStatus.PENDING)
        assert [o.id for o in page.items] == [orders[0].id]

        page = work_order_selector.list(status="rejected")
        assert [o.id for o in page.items] == [orders[2].id]

    def test_reference_filters(self, session, work_order_service, work_order_selector, deterministic_clock, orders):
        other = build_crew(session, deterministic_clock)
        elsewhere = work_order_service.create(other.entry.id, other.inspector_id).work_order

        assert work_order_selector.list(workshop_id=other.workshop_id).total == 1
        assert work_order_selector.list(entry_id=other.entry.id).items[0].id == elsewhere.id
        assert work_order_selector.list(unit_id=orders[0].unit_id).total == 3
        assert work_order_selector.list(workshop_id=uuid4()).total == 0

    def test_pagination(self, work_order_selector, orders):
        first = work_order_selector.list(page=1, limit=2)
        second = work_order_selector.list(page=2, limit=2)

        assert len(first.items) == 2
        assert [o.id for o in second.items] == [orders[0].id]
        assert first.pages == 2
        assert work_order_selector.list(page=3, limit=2).items == ()

    @pytest.mark.parametrize("page, limit", [(0, 20), (1, 0), (1, 101)])
    def test_bad_paging(self, work_order_selector, page, limit):
        with pytest.raises(ValidationError):
            work_order_selector.list(page=page, limit=limit)

    def test_store_man_listing(self, work_order_selector, crew, orders):
        page = work_order_selector.list(viewer_id=crew.store_man_id)
        assert [o.id for o in page.items] == [orders[1].id]

        # the status filter is ignored for the store room
        filtered = work_order_selector.list(viewer_id=crew.store_man_id, status="pending")
        assert [o.id for o in filtered.items] == [orders[1].id]

    def test_viewer_sees_own_workshops_only(
        self, session, work_order_service, work_order_selector, deterministic_clock, crew, orders
    ):
        other = build_crew(session, deterministic_clock)
        work_order_service.create(other.entry.id, other.inspector_id)

        assert work_order_selector.list(viewer_id=crew.captain_id).total == 3
        assert work_order_selector.list(viewer_id=other.captain_id).total == 1
        assert work_order_selector.list(viewer_id=crew.captain_id, status="approved").total == 1

    def test_viewer_without_slots(self, work_order_selector, orders):
        page = work_order_selector.list(viewer_id=uuid4())
        assert page.items == ()
        assert page.total == 0

    def test_two_workshops_mixed_visibility(
        self, session, work_order_service, work_order_selector, deterministic_clock, crew, part, orders
    ):
        other = build_crew(session, deterministic_clock)
        other.workshop.captain_id = crew.store_man_id
        session.commit()
        put_in_stock(session, other.workshop_id, part.id, 5)
        work_order_service.create(other.entry.id, other.inspector_id, part_id=part.id, quantity=1)

        # captain in ``other`` (everything), store-man in ``crew`` (approved only)
        assert work_order_selector.list(viewer_id=crew.store_man_id).total == 2
