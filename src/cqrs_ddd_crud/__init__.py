"""cqrs-ddd-crud — generic CRUD data-access layer over pluggable storage adapters.

Pagination, ID encoding, field projection, relation population and cache
invalidation on top of any :class:`~cqrs_ddd_crud.ports.IStorageAdapter`.
"""

from __future__ import annotations

# ── Adapters ────────────────────────────────────────────────────
from .adapters.memory import InMemoryAdapter

# ── Pipeline ────────────────────────────────────────────────────
from .cache import CacheInvalidator, InMemoryCachePublisher, MessagePublisherCacheBridge
from .context import Context
from .lifecycle import LifecycleManager
from .params import QueryParams, sanitize_params
from .populate import (
    LocalPopulate,
    PopulateRule,
    PopulationEngine,
    RemotePopulate,
    build_populate_rule,
    build_populate_rules,
)

# ── Ports ───────────────────────────────────────────────────────
from .ports import (
    IActionCaller,
    ICachePublisher,
    IdentityCodec,
    IIdCodec,
    IStorageAdapter,
)

# ── Primitives ──────────────────────────────────────────────────
from .primitives import (
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
from .projection import FieldProjector
from .registry import ServiceRegistry

# ── Service ─────────────────────────────────────────────────────
from .service import CrudService, PageResult, total_pages
from .settings import CrudSettings
from .transform import DocumentTransformer, TransformDirective
from .validation import EntityValidator, ValidationResult, compile_entity_validator

__all__ = [
    "ActionNotFoundError",
    "AdapterConnectionError",
    "AdapterError",
    "CacheInvalidator",
    "Context",
    "CrudError",
    "CrudService",
    "CrudSettings",
    "DocumentTransformer",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "EntityValidator",
    "FieldProjector",
    "IActionCaller",
    "ICachePublisher",
    "IIdCodec",
    "IStorageAdapter",
    "IdentityCodec",
    "InMemoryAdapter",
    "InMemoryCachePublisher",
    "LifecycleManager",
    "LocalPopulate",
    "MessagePublisherCacheBridge",
    "NotFoundError",
    "PageResult",
    "PopulateRule",
    "PopulationEngine",
    "PopulationError",
    "QueryParams",
    "RemotePopulate",
    "ServiceRegistry",
    "TransformDirective",
    "ValidationError",
    "ValidationResult",
    "build_populate_rule",
    "build_populate_rules",
    "compile_entity_validator",
    "sanitize_params",
    "total_pages",
]
