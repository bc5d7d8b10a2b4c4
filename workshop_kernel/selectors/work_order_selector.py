"""
Read side for work orders.

Visibility follows the workshop role slots: an actor sees the orders of
workshops where they hold a slot; an actor whose only slot in a workshop is
store-man sees that workshop's APPROVED orders and nothing else (the store
room only needs the orders waiting to be handed over).  Queries without a
viewer are unrestricted and meant for internal callers.
"""

from uuid import UUID

from sqlalchemy import and_, false, func, or_, select

from workshop_kernel.domain.dtos import StockLevel, WorkOrderDetail, WorkOrderPage, WorkOrderSnapshot
from workshop_kernel.domain.roles import ROLE_SLOT_COLUMNS, WorkshopRole, held_roles
from workshop_kernel.domain.work_order import WorkOrderStatus
from workshop_kernel.exceptions import ActorNotAssignedError, ValidationError, WorkOrderNotFoundError
from workshop_kernel.models.inventory import InventoryLedgerEntry
from workshop_kernel.models.work_order import WorkOrder
from workshop_kernel.models.workshop import Workshop
from workshop_kernel.selectors.base import BaseSelector
from workshop_kernel.utils.ids import as_optional_uuid, as_uuid

MAX_PAGE_SIZE = 100

_ALL_SLOTS = tuple(sorted(r.value for r in ROLE_SLOT_COLUMNS))


def _store_only(roles: frozenset[WorkshopRole]) -> bool:
    return roles == {WorkshopRole.STORE_MAN}


class WorkOrderSelector(BaseSelector[WorkOrder]):
    def get(self, work_order_id: UUID | str, viewer_id: UUID | str | None = None) -> WorkOrderDetail:
        """
        One work order with its part's current stock.

        Raises:
            WorkOrderNotFoundError: unknown id.
            ActorNotAssignedError: the viewer holds no slot in the order's
                workshop, or only the store-man slot and the order is not
                APPROVED.
        """
        order = self.session.get(WorkOrder, as_uuid(work_order_id))
        if order is None:
            raise WorkOrderNotFoundError(str(work_order_id))

        if viewer_id is not None:
            viewer = as_uuid(viewer_id)
            workshop = self.session.get(Workshop, order.workshop_id)
            roles = held_roles(workshop, viewer)
            if not roles:
                raise ActorNotAssignedError(str(viewer), str(order.workshop_id), "view", _ALL_SLOTS)
            if _store_only(roles) and WorkOrderStatus(order.status) != WorkOrderStatus.APPROVED:
                raise ActorNotAssignedError(
                    str(viewer),
                    str(order.workshop_id),
                    "view",
                    tuple(r for r in _ALL_SLOTS if r != WorkshopRole.STORE_MAN.value),
                )

        return WorkOrderDetail(
            work_order=WorkOrderSnapshot.from_model(order),
            stock=self._stock_for(order),
        )

    def list(
        self,
        viewer_id: UUID | str | None = None,
        workshop_id: UUID | str | None = None,
        entry_id: UUID | str | None = None,
        unit_id: UUID | str | None = None,
        status: WorkOrderStatus | str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> WorkOrderPage:
        """Filtered page of work orders, newest first."""
        if page < 1:
            raise ValidationError(f"page must be at least 1, got {page}")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")

        status_value = WorkOrderStatus(status).value if status is not None else None
        conditions = []

        if workshop_id is not None:
            conditions.append(WorkOrder.workshop_id == as_uuid(workshop_id))
        if entry_id is not None:
            conditions.append(WorkOrder.entry_id == as_uuid(entry_id))
        if unit_id is not None:
            conditions.append(WorkOrder.unit_id == as_uuid(unit_id))

        viewer = as_optional_uuid(viewer_id)
        if viewer is None:
            if status_value is not None:
                conditions.append(WorkOrder.status == status_value)
        else:
            conditions.append(self._visibility(viewer, status_value))

        count = self.session.execute(
            select(func.count()).select_from(WorkOrder).where(*conditions)
        ).scalar_one()

        orders = self.session.execute(
            select(WorkOrder)
            .where(*conditions)
            .order_by(WorkOrder.requested_at.desc(), WorkOrder.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return WorkOrderPage(
            items=tuple(WorkOrderSnapshot.from_model(o) for o in orders),
            total=count,
            page=page,
            limit=limit,
        )

    def _visibility(self, viewer: UUID, status_value: str | None):
        workshops = self.session.execute(
            select(Workshop).where(
                or_(*(getattr(Workshop, c) == viewer for c in ROLE_SLOT_COLUMNS.values()))
            )
        ).scalars().all()

        full_ids = []
        store_ids = []
        for workshop in workshops:
            if _store_only(held_roles(workshop, viewer)):
                store_ids.append(workshop.id)
            else:
                full_ids.append(workshop.id)

        branches = []
        if full_ids:
            full = WorkOrder.workshop_id.in_(full_ids)
            if status_value is not None:
                full = and_(full, WorkOrder.status == status_value)
            branches.append(full)
        if store_ids:
            # the store room's status filter is fixed
            branches.append(
                and_(
                    WorkOrder.workshop_id.in_(store_ids),
                    WorkOrder.status == WorkOrderStatus.APPROVED.value,
                )
            )
        return or_(*branches) if branches else false()

    def _stock_for(self, order: WorkOrder) -> StockLevel | None:
        if order.part_id is None:
            return None
        entry = self.session.execute(
            select(InventoryLedgerEntry).where(
                InventoryLedgerEntry.workshop_id == order.workshop_id,
                InventoryLedgerEntry.part_id == order.part_id,
            )
        ).scalar_one_or_none()
        return StockLevel.from_model(entry) if entry is not None else None
