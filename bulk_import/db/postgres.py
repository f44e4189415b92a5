from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extras import execute_batch, execute_values
from psycopg2.pool import ThreadedConnectionPool

from ..config.loader import ConfigError
from ..errors import BackendError, BatchWriteError, ImportEngineError, ReferenceCreationError
from ..models.config_models import DatabaseConfig, EngineConfig, EntityTableConfig, ReferenceTableConfig
from ..models.import_record import normalize_key
from ..models.reconciled_row import Operation
from ..models.reference import ReferenceEntry
from ..models.schema_models import EntitySchema
from .protocol import BulkWriteResult, ExistingRecord

"""PostgreSQL backend (psycopg2).

- One ``ThreadedConnectionPool``; each capability call checks out its own
  connection so executor workers never share one.
- Inserts go through ``execute_values``, updates through ``execute_batch``.
- One transaction per ``bulk_write`` call: the batch is the unit of work.
- Driver errors are wrapped: ``BackendError`` for lookups,
  ``ReferenceCreationError`` for creates, ``BatchWriteError`` for writes.

Table and column names come from the validated YAML config (identifier pattern
enforced by the JSON schema) and are double-quoted into the SQL text.
"""

__all__ = [
    "resolve_dsn",
    "PostgresBackend",
]

logger = logging.getLogger(__name__)

KEY_LOOKUP_PAGE = 1000


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string; environment variables win over the config section.

    Priority: DATABASE_URL / PGDSN, then PGHOST/PGPORT/PGUSER/PGPASSWORD/PGDATABASE,
    then config/import.yml ``database``.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _q(identifier: str) -> str:
    return ".".join(f'"{part}"' for part in identifier.split("."))


class PostgresBackend:
    def __init__(self, config: EngineConfig, pool: Any | None = None) -> None:
        self.config = config
        if pool is None:
            try:
                pool = ThreadedConnectionPool(1, config.max_workers + 1, resolve_dsn(config.database))
            except psycopg2.Error as e:
                raise ImportEngineError(f"database connection failed: {e}") from e
        self._pool = pool
        self._key_columns: dict[str, tuple[str, ...]] = {}

    def close(self) -> None:
        self._pool.closeall()

    def __enter__(self) -> PostgresBackend:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def check_schema(self, schema: EntitySchema) -> None:
        """Fail fast when the config lacks a table the entity needs."""
        if schema.name not in self.config.entity_tables:
            raise ConfigError(f"entity_tables has no entry for '{schema.name}'")
        missing = [k for k in schema.reference_kinds if k not in self.config.reference_tables]
        if missing:
            raise ConfigError(f"reference_tables has no entry for: {', '.join(missing)}")
        table = self.config.entity_tables[schema.name]
        self._key_columns[schema.name] = table.key_columns or tuple(
            schema.field_spec(f).target_column for f in schema.natural_key
        )

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._pool.getconn()
        try:
            # connection context commits on success, rolls back on error
            with conn:
                with conn.cursor() as cur:
                    yield cur
        finally:
            self._pool.putconn(conn)

    def _reference_table(self, kind: str) -> ReferenceTableConfig:
        try:
            return self.config.reference_tables[kind]
        except KeyError:
            raise ConfigError(f"reference_tables has no entry for '{kind}'") from None

    def _entity_table(self, entity: str) -> EntityTableConfig:
        try:
            return self.config.entity_tables[entity]
        except KeyError:
            raise ConfigError(f"entity_tables has no entry for '{entity}'") from None

    def lookup_reference(self, kind: str) -> list[ReferenceEntry]:
        t = self._reference_table(kind)
        order = _q(t.order_column or t.id_column)
        sql = (
            f"SELECT {_q(t.id_column)}, {_q(t.name_column)} FROM {_q(t.table)} "
            f"WHERE {_q(t.name_column)} IS NOT NULL ORDER BY {order}"
        )
        try:
            with self._cursor() as cur:
                cur.execute(sql)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise BackendError(f"lookup of {kind} failed: {str(e).strip()}") from e
        logger.debug("loaded %d %s", len(rows), kind)
        return [ReferenceEntry(rid, str(name)) for rid, name in rows]

    def create_reference(self, kind: str, name: str, parent_id: Any | None = None) -> Any:
        t = self._reference_table(kind)
        values: dict[str, Any] = dict(t.defaults)
        values[t.name_column] = name
        if t.parent_column is not None:
            values[t.parent_column] = parent_id
        columns = list(values)
        sql = (
            f"INSERT INTO {_q(t.table)} ({','.join(_q(c) for c in columns)}) "
            f"VALUES ({','.join(['%s'] * len(columns))}) RETURNING {_q(t.id_column)}"
        )
        try:
            with self._cursor() as cur:
                cur.execute(sql, [values[c] for c in columns])
                return cur.fetchone()[0]
        except psycopg2.Error as e:
            raise ReferenceCreationError(kind, name, str(e).strip()) from e

    def lookup_existing(
        self, entity: str, keys: Sequence[tuple[str, ...]]
    ) -> list[ExistingRecord]:
        t = self._entity_table(entity)
        key_columns = t.key_columns or self._key_columns.get(entity, ())
        if not key_columns:
            raise ConfigError(f"entity_tables.{entity} needs key_columns")
        aliases = [f"k{i}" for i in range(len(key_columns))]
        join = " AND ".join(
            f"lower(btrim(t.{_q(col)}::text)) = v.{alias}"
            for col, alias in zip(key_columns, aliases)
        )
        selected = ", ".join(f"t.{_q(c)}" for c in key_columns)
        sql = (
            f"SELECT t.{_q(t.id_column)}, {selected} FROM {_q(t.table)} t "
            f"JOIN (VALUES %s) AS v({','.join(aliases)}) ON {join}"
        )
        lowered = sorted({normalize_key(k) for k in keys})
        found: list[ExistingRecord] = []
        try:
            with self._cursor() as cur:
                for start in range(0, len(lowered), KEY_LOOKUP_PAGE):
                    page = lowered[start:start + KEY_LOOKUP_PAGE]
                    rows = execute_values(cur, sql, page, page_size=len(page), fetch=True)
                    found.extend(ExistingRecord(tuple(str(v) for v in r[1:]), r[0]) for r in rows)
        except psycopg2.Error as e:
            raise BackendError(f"lookup of existing {entity} failed: {str(e).strip()}") from e
        return found

    def bulk_write(
        self, entity: str, operation: Operation, rows: Sequence[dict[str, Any]]
    ) -> BulkWriteResult:
        if not rows:
            return BulkWriteResult()
        t = self._entity_table(entity)

        def column(key: str) -> str:
            return t.column_map.get(key, t.id_column if key == "id" else key)

        try:
            with self._cursor() as cur:
                if operation is Operation.INSERT:
                    keys = list(rows[0])
                    columns = ",".join(_q(column(k)) for k in keys)
                    sql = f"INSERT INTO {_q(t.table)} ({columns}) VALUES %s"
                    execute_values(cur, sql, [tuple(r.get(k) for k in keys) for r in rows],
                                   page_size=len(rows))
                else:
                    # update payloads may leave columns out; one statement per column set
                    groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
                    for r in rows:
                        groups.setdefault(tuple(k for k in r if k != "id"), []).append(r)
                    for keys, group in groups.items():
                        assignments = ", ".join(f"{_q(column(k))} = %s" for k in keys)
                        sql = f"UPDATE {_q(t.table)} SET {assignments} WHERE {_q(t.id_column)} = %s"
                        params = [[r[k] for k in keys] + [r["id"]] for r in group]
                        execute_batch(cur, sql, params, page_size=len(group))
        except psycopg2.Error as e:
            raise BatchWriteError(str(e).strip()) from e
        return BulkWriteResult(succeeded=[r["id"] for r in rows])
