"""Entity validation before persistence."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, create_model
from pydantic import ValidationError as PydanticValidationError

from .primitives.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic_core import ErrorDetails


@dataclass
class ValidationResult:
    """Field-level validation outcome a validator function may return.

    Usage::

        return ValidationResult.failure({"name": ["is required"]})
    """

    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    @classmethod
    def success(cls) -> ValidationResult:
        return cls()

    @classmethod
    def failure(cls, errors: dict[str, list[str]]) -> ValidationResult:
        return cls(errors=errors)

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)

    def __bool__(self) -> bool:
        return self.is_valid


def errors_from_pydantic(exc: PydanticValidationError) -> dict[str, list[str]]:
    """Flatten pydantic errors into ``{dotted.loc: [messages]}``."""
    errors: dict[str, list[str]] = {}
    details: list[ErrorDetails] = exc.errors()
    for error in details:
        loc = ".".join(str(p) for p in error.get("loc", ())) or "__root__"
        msg = error.get("msg", "validation error")
        errors.setdefault(loc, []).append(msg)
    return errors


def _field_definition(spec: Any) -> Any:
    if isinstance(spec, tuple):
        return spec
    return (spec, ...)


def compile_entity_validator(schema: Any) -> Callable[[Any], None]:
    """Compile a declarative schema into a validation function.

    *schema* is either a pydantic model class or a mapping of field name to a
    type (required field) or ``(type, default)`` tuple. The returned function
    raises :class:`ValidationError` when an entity does not conform.
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        model: type[BaseModel] = schema
    elif isinstance(schema, Mapping):
        definitions = {name: _field_definition(spec) for name, spec in schema.items()}
        model = create_model("EntitySchema", **definitions)
    else:
        raise TypeError(
            f"Cannot compile entity validator from {type(schema).__name__}"
        )

    def check(entity: Any) -> None:
        try:
            model.model_validate(entity)
        except PydanticValidationError as exc:
            raise ValidationError(errors_from_pydantic(exc)) from exc

    return check


def _failure_from_outcome(outcome: Any) -> ValidationError | None:
    # Only an explicit rejection fails; any other return value passes.
    if isinstance(outcome, ValidationResult):
        return None if outcome.is_valid else ValidationError(outcome.errors)
    if outcome is False:
        return ValidationError("Entity validation failed")
    if isinstance(outcome, (list, tuple)) and outcome:
        return ValidationError({"__root__": [str(item) for item in outcome]})
    return None


class EntityValidator:
    """Runs the configured validator over one entity or a list of entities.

    Validators observe, they do not transform: the input is returned as is.
    Entities are checked concurrently and the first failure *in input order*
    is raised; failures are not aggregated.
    """

    def __init__(self, validator: Callable[[Any], Any] | None = None) -> None:
        self._validator = validator

    async def validate(self, entity: Any) -> Any:
        if self._validator is None:
            return entity

        entities = entity if isinstance(entity, list) else [entity]
        results = await asyncio.gather(
            *(self._check(item) for item in entities), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return entity

    async def _check(self, entity: Any) -> None:
        assert self._validator is not None
        try:
            outcome = self._validator(entity)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except PydanticValidationError as exc:
            raise ValidationError(errors_from_pydantic(exc)) from exc
        failure = _failure_from_outcome(outcome)
        if failure is not None:
            raise failure
