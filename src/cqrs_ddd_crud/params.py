"""
Per-request query parameters and their sanitization.

``QueryParams`` is the canonical, immutable shape every adapter receives.
Callers send camelCase keys (``pageSize``, ``searchFields``,
``resultAsObject``); snake_case names are accepted too.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .primitives.exceptions import ValidationError
from .projection import normalize_fields
from .validation import errors_from_pydantic

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .settings import CrudSettings

_SORT_SEPARATOR = re.compile(r"[,\s]+")


class QueryParams(BaseModel):
    """
    Immutable container for request parameters.

    Attributes:
        limit: Maximum number of documents.
        offset: Number of documents to skip.
        page: 1-based page number (``list`` only).
        page_size: Documents per page (``list`` only).
        sort: Ordered field names. Prefix with ``-`` for descending.
        search: Free-text search term.
        search_fields: Fields the search term is matched against.
        query: Opaque filter passed through to the adapter.
        fields: Dot-path projection, or ``False`` to return full documents.
        populate: Whether relation population runs.
        result_as_object: ``model`` returns a mapping of ID to document.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)
    page: int | None = Field(default=None, ge=0)
    page_size: int | None = Field(default=None, ge=0)
    sort: list[str] | None = None
    search: str | None = None
    search_fields: list[str] | None = None
    query: dict[str, Any] | None = None
    fields: list[str] | Literal[False] | None = None
    populate: bool = True
    result_as_object: bool = False

    @field_validator("sort", mode="before")
    @classmethod
    def _split_sort(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part for part in _SORT_SEPARATOR.split(value) if part]
        return value

    @field_validator("search_fields", mode="before")
    @classmethod
    def _split_search_fields(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part for part in _SORT_SEPARATOR.split(value) if part]
        return value

    @field_validator("fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value: Any) -> Any:
        return normalize_fields(value)

    def without_pagination(self) -> QueryParams:
        """Return a copy with ``limit`` and ``offset`` cleared."""
        return self.model_copy(update={"limit": None, "offset": None})


def sanitize_params(
    raw: Mapping[str, Any] | QueryParams | None,
    settings: CrudSettings,
    *,
    for_list: bool = False,
) -> QueryParams:
    """Normalize raw request parameters into :class:`QueryParams`.

    Numeric strings are coerced to integers and a delimited ``sort`` string is
    split into a field list. With ``for_list`` the page parameters are
    defaulted and clamped, and ``limit``/``offset`` are derived from them.

    Raises:
        ValidationError: a parameter cannot be coerced.
    """
    if isinstance(raw, QueryParams):
        params = raw
    else:
        try:
            params = QueryParams.model_validate(dict(raw or {}))
        except PydanticValidationError as exc:
            raise ValidationError(errors_from_pydantic(exc)) from exc

    if not for_list:
        return params

    page_size = params.page_size or settings.page_size
    page = params.page or 1

    if settings.max_page_size > 0 and page_size > settings.max_page_size:
        page_size = settings.max_page_size

    limit = page_size
    offset = (page - 1) * page_size

    if settings.max_limit > 0 and limit > settings.max_limit:
        limit = settings.max_limit

    return params.model_copy(
        update={
            "page": page,
            "page_size": page_size,
            "limit": limit,
            "offset": offset,
        }
    )
