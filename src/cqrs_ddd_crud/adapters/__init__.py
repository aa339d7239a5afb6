"""Reference storage adapters.

``InMemoryAdapter`` has no extra dependencies. ``MongoAdapter`` lives in
:mod:`cqrs_ddd_crud.adapters.mongo` and needs the ``mongo`` extra (motor).
"""

from __future__ import annotations

from .memory import InMemoryAdapter

__all__ = ["InMemoryAdapter"]
