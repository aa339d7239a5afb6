"""Exceptions raised by the CRUD data-access layer."""

from __future__ import annotations


class CrudError(Exception):
    """Root exception for the cqrs-ddd-crud package."""


class ValidationError(CrudError):
    """Raised when an entity or request parameters fail validation.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class NotFoundError(CrudError):
    """Raised when a resource is not found."""


class EntityNotFoundError(NotFoundError):
    """Raised when a specific entity cannot be found by ID."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class AdapterError(CrudError):
    """Base class for storage adapter failures.

    Adapters raise subclasses of this; the service propagates them unchanged.
    """


class AdapterConnectionError(AdapterError):
    """Raised when an adapter cannot establish its backend connection."""


class DuplicateEntityError(AdapterError):
    """Raised when an insert reuses an ID that is already stored."""

    def __init__(self, entity_id: object) -> None:
        self.entity_id = entity_id
        super().__init__(f"Entity with id={entity_id!r} already exists")


class PopulationError(CrudError):
    """Raised when a populate rule fails to resolve its foreign IDs.

    The underlying failure is chained as ``__cause__``.
    """

    def __init__(self, field: str, source: str, reason: str | None = None) -> None:
        self.field = field
        self.source = source
        self.reason = reason

        msg = f"Failed to populate field {field!r} via {source}"
        if reason:
            msg += f" - {reason}"

        super().__init__(msg)


class ActionNotFoundError(CrudError):
    """Raised when an action call cannot be routed to a registered service."""
