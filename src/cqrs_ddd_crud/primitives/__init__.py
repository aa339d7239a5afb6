"""Primitives: exceptions."""

from __future__ import annotations

from .exceptions import (
    ActionNotFoundError,
    AdapterConnectionError,
    AdapterError,
    CrudError,
    DuplicateEntityError,
    EntityNotFoundError,
    NotFoundError,
    PopulationError,
    ValidationError,
)

__all__ = [
    "ActionNotFoundError",
    "AdapterConnectionError",
    "AdapterError",
    "CrudError",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "NotFoundError",
    "PopulationError",
    "ValidationError",
]
