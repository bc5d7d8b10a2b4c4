"""Pure domain layer: state machine, roles, DTOs and the clock."""
