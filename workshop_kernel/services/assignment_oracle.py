"""
AssignmentOracle -- who holds which role slot in a workshop.

Role assignments live on the workshop row and are read at the moment a
transition is attempted; nothing is cached on the work order.  An actor who
holds the required slot in a *different* workshop is treated exactly like
an actor who holds no slot at all.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from workshop_kernel.domain.roles import ROLE_SLOT_COLUMNS, WorkshopRole, held_roles
from workshop_kernel.domain.work_order import TransitionRule
from workshop_kernel.exceptions import ActorNotAssignedError
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.workshop import Workshop
from workshop_kernel.selectors.reference_selector import ReferenceSelector
from workshop_kernel.utils.ids import as_uuid

logger = get_logger("services.assignment_oracle")


class AssignmentOracle:
    def __init__(self, session: Session):
        self._session = session
        self._references = ReferenceSelector(session)

    @staticmethod
    def roles_in(workshop: Workshop, actor_id: UUID | str) -> frozenset[WorkshopRole]:
        """Slots of an already-loaded workshop held by ``actor_id``."""
        return held_roles(workshop, as_uuid(actor_id))

    def roles_of(self, workshop_id: UUID | str, actor_id: UUID | str) -> frozenset[WorkshopRole]:
        """
        All slots ``actor_id`` holds in the workshop; empty when none.

        Raises:
            WorkshopNotFoundError: the workshop does not exist.
        """
        workshop = self._references.get_workshop(as_uuid(workshop_id))
        return self.roles_in(workshop, actor_id)

    def role_of(self, workshop_id: UUID | str, actor_id: UUID | str) -> WorkshopRole:
        """
        The actor's slot in the workshop, or ``WorkshopRole.NONE``.

        When one actor fills several slots, the first in slot order
        (inspector, captain, OC, store-man) is returned; use roles_of() to
        see them all.
        """
        roles = self.roles_of(workshop_id, actor_id)
        for role in ROLE_SLOT_COLUMNS:
            if role in roles:
                return role
        return WorkshopRole.NONE

    def authorize(
        self,
        workshop: Workshop,
        actor_id: UUID | str,
        rule: TransitionRule,
    ) -> frozenset[WorkshopRole]:
        """
        Check ``actor_id`` against the rule's allowed slots.

        Returns the slots the actor holds (at least one of them allowed).

        Raises:
            ActorNotAssignedError: none of the actor's slots is allowed.
        """
        roles = self.roles_in(workshop, actor_id)
        if not rule.permits_roles(roles):
            required = tuple(sorted(r.value for r in rule.allowed_roles))
            logger.warning(
                "actor_not_assigned",
                extra={
                    "action": rule.action.value,
                    "required_roles": required,
                    "held_roles": tuple(sorted(r.value for r in roles)),
                },
            )
            raise ActorNotAssignedError(
                actor_id=str(actor_id),
                workshop_id=str(workshop.id),
                action=rule.action.value,
                required_roles=required,
            )
        return roles

    def workshops_for(
        self,
        actor_id: UUID | str,
        role: WorkshopRole | None = None,
    ) -> list[UUID]:
        """Ids of workshops where the actor holds ``role`` (any slot if None)."""
        actor = as_uuid(actor_id)
        if role == WorkshopRole.NONE:
            return []
        if role is not None:
            condition = getattr(Workshop, ROLE_SLOT_COLUMNS[role]) == actor
        else:
            condition = or_(
                *(getattr(Workshop, column) == actor for column in ROLE_SLOT_COLUMNS.values())
            )
        return list(
            self._session.execute(
                select(Workshop.id).where(condition).order_by(Workshop.name)
            ).scalars().all()
        )
