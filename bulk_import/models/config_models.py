from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the bulk import engine.

These are separate from the loader implementation in bulk_import/config/loader.py
and focus on typing; the loader validates raw YAML and builds them.
"""

__all__ = [
    "DatabaseConfig",
    "ReferenceTableConfig",
    "EntityTableConfig",
    "EngineConfig",
]

DEFAULT_BATCH_SIZE = 200
DEFAULT_MAX_WORKERS = 4
DEFAULT_NULL_SENTINELS = frozenset({"N/A", "-"})
DEFAULT_ERROR_DETAIL_LIMIT = 50


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ReferenceTableConfig:
    """Where one reference kind lives in PostgreSQL."""
    table: str
    name_column: str = "name"
    id_column: str = "id"
    parent_column: str | None = None  # FK to the parent kind (sub_departments.department_id)
    order_column: str | None = None  # load order; decides which duplicate name wins
    defaults: dict[str, object] = field(default_factory=dict)  # static columns on create


@dataclass(frozen=True)
class EntityTableConfig:
    """Where one importable entity lives in PostgreSQL."""
    table: str
    id_column: str = "id"
    key_columns: tuple[str, ...] | None = None  # defaults to the schema natural key
    column_map: dict[str, str] = field(default_factory=dict)  # payload key -> column


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object for an import run."""
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    null_sentinels: frozenset[str] = DEFAULT_NULL_SENTINELS  # upper-cased
    error_detail_limit: int = DEFAULT_ERROR_DETAIL_LIMIT
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    reference_tables: dict[str, ReferenceTableConfig] = field(default_factory=dict)
    entity_tables: dict[str, EntityTableConfig] = field(default_factory=dict)
    synonyms: dict[str, dict[str, tuple[str, ...]]] = field(default_factory=dict)
