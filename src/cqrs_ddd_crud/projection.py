"""Field projection over nested documents using dot paths."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

MISSING: Any = object()


def get_path(doc: Any, path: str) -> Any:
    """Return the value at dot-separated *path*, or ``MISSING``.

    Mapping keys are matched by name; integer segments index into lists.
    """
    current = doc
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not part.isdigit() or int(part) >= len(current):
                return MISSING
            current = current[int(part)]
        else:
            return MISSING
    return current


def set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    """Set *value* at dot-separated *path*, creating intermediate dicts."""
    parts = path.split(".")
    current = doc
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def normalize_fields(fields: Any) -> list[str] | bool | None:
    """Accept a list of paths, a space-separated string, ``False`` or ``None``."""
    if fields is None or fields is False:
        return fields
    if isinstance(fields, str):
        return [f for f in fields.split() if f]
    return list(fields)


def authorize_all(fields: list[str]) -> list[str]:
    return fields


class FieldProjector:
    """Prunes documents down to an allowlist of dot paths.

    ``authorize`` narrows the requested field list before projection. The
    default lets every requested field through.
    """

    def __init__(
        self, authorize: Callable[[list[str]], list[str]] | None = None
    ) -> None:
        self._authorize = authorize or authorize_all

    def authorize_fields(self, fields: list[str]) -> list[str]:
        return self._authorize(fields)

    def project(self, doc: Any, fields: list[str] | bool | None) -> Any:
        """Return a new document restricted to *fields*.

        ``None``/``False`` returns *doc* untouched. Paths that do not resolve
        are skipped silently; an explicit ``None`` value is kept.
        """
        if not isinstance(fields, list):
            return doc

        result: dict[str, Any] = {}
        for path in self.authorize_fields(fields):
            value = get_path(doc, path)
            if value is not MISSING:
                set_path(result, path, value)
        return result
