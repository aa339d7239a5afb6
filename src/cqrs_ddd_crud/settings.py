"""CrudSettings — immutable per-service configuration."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .populate import build_populate_rules
from .projection import normalize_fields
from .validation import compile_entity_validator


class CrudSettings(BaseModel):
    """Service-wide settings, fixed once the service is built.

    Populate rules are resolved into :class:`LocalPopulate` /
    :class:`RemotePopulate` variants and a declarative ``entity_validator``
    schema is compiled into a function at construction time.

    ``max_page_size`` and ``max_limit`` are disabled when not positive.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id_field: str = "_id"
    fields: list[str] | Literal[False] | None = None
    populates: dict[str, Any] = Field(default_factory=dict)
    entity_validator: Callable[[Any], Any] | None = None
    page_size: int = Field(default=10, ge=1)
    max_page_size: int = 100
    max_limit: int = -1

    @field_validator("fields", mode="before")
    @classmethod
    def _split_fields(cls, value: Any) -> Any:
        return normalize_fields(value)

    @field_validator("populates", mode="before")
    @classmethod
    def _build_populates(cls, value: Any) -> Any:
        return build_populate_rules(value)

    @field_validator("entity_validator", mode="before")
    @classmethod
    def _compile_validator(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, type) and issubclass(value, BaseModel):
            return compile_entity_validator(value)
        if isinstance(value, dict):
            return compile_entity_validator(value)
        return value
