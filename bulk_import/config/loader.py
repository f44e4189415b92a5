from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ERROR_DETAIL_LIMIT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_NULL_SENTINELS,
    DatabaseConfig,
    EngineConfig,
    EntityTableConfig,
    ReferenceTableConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate it against the bundled JSON schema (config_schema.json)
- Apply defaults and build the EngineConfig dataclasses
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "config_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Args:
        data: Configuration data to validate

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (unknown keys, wrong types,
            out of range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _reference_tables(raw: dict[str, Any]) -> dict[str, ReferenceTableConfig]:
    tables: dict[str, ReferenceTableConfig] = {}
    for kind, entry in raw.items():
        tables[kind] = ReferenceTableConfig(
            table=entry["table"],
            name_column=entry.get("name_column", "name"),
            id_column=entry.get("id_column", "id"),
            parent_column=entry.get("parent_column"),
            order_column=entry.get("order_column"),
            defaults=dict(entry.get("defaults") or {}),
        )
    return tables


def _entity_tables(raw: dict[str, Any]) -> dict[str, EntityTableConfig]:
    tables: dict[str, EntityTableConfig] = {}
    for entity, entry in raw.items():
        key_columns = entry.get("key_columns")
        tables[entity] = EntityTableConfig(
            table=entry["table"],
            id_column=entry.get("id_column", "id"),
            key_columns=tuple(key_columns) if key_columns else None,
            column_map=dict(entry.get("column_map") or {}),
        )
    return tables


def config_from_dict(data: dict[str, Any]) -> EngineConfig:
    """Validate an already parsed mapping and build the EngineConfig."""
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    sentinels = data.get("null_sentinels")
    if sentinels is None:
        null_sentinels = DEFAULT_NULL_SENTINELS
    else:
        null_sentinels = frozenset(s.strip().upper() for s in sentinels)

    synonyms = {
        entity: {name: tuple(spellings) for name, spellings in fields.items()}
        for entity, fields in (data.get("synonyms") or {}).items()
    }
    return EngineConfig(
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        max_workers=data.get("max_workers", DEFAULT_MAX_WORKERS),
        null_sentinels=null_sentinels,
        error_detail_limit=data.get("error_detail_limit", DEFAULT_ERROR_DETAIL_LIMIT),
        database=db,
        reference_tables=_reference_tables(data.get("reference_tables") or {}),
        entity_tables=_entity_tables(data.get("entity_tables") or {}),
        synonyms=synonyms,
    )


def load_config(path: Path) -> EngineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return config_from_dict(data)
