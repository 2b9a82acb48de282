"""Pure domain layer: values, request DTOs, audit events, clock."""
