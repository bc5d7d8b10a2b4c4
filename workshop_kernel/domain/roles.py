"""
Workshop role slots.

A workshop has exactly four role slots, each held by at most one actor.  The
same actor may fill more than one slot of a workshop, and slots of several
workshops.  ``NONE`` is the answer for an actor holding no slot.
"""

from enum import Enum


class WorkshopRole(str, Enum):
    INSPECTOR = "inspector"
    CAPTAIN = "captain"
    OC = "oc"
    STORE_MAN = "store_man"
    NONE = "none"


# Workshop column holding the actor assigned to each slot
ROLE_SLOT_COLUMNS: dict[WorkshopRole, str] = {
    WorkshopRole.INSPECTOR: "inspector_id",
    WorkshopRole.CAPTAIN: "captain_id",
    WorkshopRole.OC: "oc_id",
    WorkshopRole.STORE_MAN: "store_man_id",
}


def held_roles(workshop, actor_id) -> frozenset[WorkshopRole]:
    """Slots of ``workshop`` (any object with the slot columns) filled by
    ``actor_id``."""
    return frozenset(
        role
        for role, column in ROLE_SLOT_COLUMNS.items()
        if getattr(workshop, column) == actor_id
    )
