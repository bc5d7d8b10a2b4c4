"""Identifier normalization."""

from uuid import UUID

from workshop_kernel.exceptions import InvalidIdentifierError


def as_uuid(value: UUID | str) -> UUID:
    """Accept a UUID or its string form.

    Raises:
        InvalidIdentifierError: anything else.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidIdentifierError(value) from exc


def as_optional_uuid(value: UUID | str | None) -> UUID | None:
    return None if value is None else as_uuid(value)
