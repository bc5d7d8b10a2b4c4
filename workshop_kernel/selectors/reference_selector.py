"""
Lookups of the reference records a work order points at.

Each ``get_*`` returns the row or raises the matching ``*NotFoundError``.
Rows are returned as ORM instances: the lifecycle service reads their
columns inside its own transaction and, for auto-issue, moves a unit's
status.
"""

from uuid import UUID

from workshop_kernel.exceptions import (
    EntryNotFoundError,
    PartNotFoundError,
    UnitNotFoundError,
    WorkshopNotFoundError,
)
from workshop_kernel.models.workshop import Entry, SparePart, Unit, Workshop
from workshop_kernel.selectors.base import BaseSelector


class ReferenceSelector(BaseSelector[Workshop]):
    def get_workshop(self, workshop_id: UUID) -> Workshop:
        workshop = self.session.get(Workshop, workshop_id)
        if workshop is None:
            raise WorkshopNotFoundError(str(workshop_id))
        return workshop

    def get_unit(self, unit_id: UUID) -> Unit:
        unit = self.session.get(Unit, unit_id)
        if unit is None:
            raise UnitNotFoundError(str(unit_id))
        return unit

    def get_entry(self, entry_id: UUID) -> Entry:
        entry = self.session.get(Entry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def get_part(self, part_id: UUID) -> SparePart:
        part = self.session.get(SparePart, part_id)
        if part is None:
            raise PartNotFoundError(str(part_id))
        return part
