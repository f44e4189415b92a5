from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Entity schema descriptors for the import engine.

An ``EntitySchema`` is the strategy object that parameterizes the generic
pipeline: which columns exist (and their spelling variants), which of them are
required, which ones name rows in other tables, and what the natural key is.
Concrete descriptors for employees, assets and SIM cards live in
``bulk_import.config.entities``.
"""

__all__ = [
    "FieldKind",
    "FieldSpec",
    "ReferenceFieldSpec",
    "NameSplit",
    "EntitySchema",
]


class FieldKind(Enum):
    """How the normalizer treats a column value."""
    TEXT = "text"
    DATE = "date"
    NUMBER_TEXT = "number_text"  # digits that spreadsheets like to render as 8.31E+11
    EMAIL = "email"
    LOWER = "lower"  # status-like enumerations compared case-insensitively


@dataclass(frozen=True)
class FieldSpec:
    """A single canonical column of an entity."""
    name: str  # canonical header (lower-case)
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    synonyms: tuple[str, ...] = ()
    pattern: str | None = None  # regex the normalized value must fully match
    pattern_message: str | None = None
    allowed_values: tuple[str, ...] | None = None
    default: str | None = None  # applied when the value is absent
    column: str | None = None  # backend column; defaults to name

    @property
    def target_column(self) -> str:
        return self.column or self.name


@dataclass(frozen=True)
class ReferenceFieldSpec:
    """A column whose value names a row of a reference table."""
    field: str  # canonical source field holding the free-text name
    kind: str  # reference kind, e.g. "departments"
    column: str  # backend column receiving the resolved id
    label: str  # human readable name used in messages
    parent_field: str | None = None  # must be resolved before this one
    create_missing: bool = True
    partial_match: bool = False


@dataclass(frozen=True)
class NameSplit:
    """Split a single full-name field into first/last components."""
    source: str
    first: str = "first_name"
    last: str = "last_name"


@dataclass(frozen=True)
class EntitySchema:
    """Descriptor consumed by every stage of the pipeline."""
    name: str  # entity type, e.g. "employees"
    fields: tuple[FieldSpec, ...]
    references: tuple[ReferenceFieldSpec, ...]
    natural_key: tuple[str, ...]
    name_split: NameSplit | None = None
    extra_synonyms: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def field_spec(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def reference_spec(self, field_name: str) -> ReferenceFieldSpec | None:
        for ref in self.references:
            if ref.field == field_name:
                return ref
        return None

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.required)

    @property
    def reference_kinds(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for ref in self.references:
            seen.setdefault(ref.kind, None)
        return tuple(seen)

    def synonym_table(self) -> dict[str, str]:
        """Map every accepted header spelling to its canonical field name.

        Canonical names always map to themselves; a spelling claimed by two
        fields keeps the first field in declaration order.
        """
        table: dict[str, str] = {}
        for spec in self.fields:
            table.setdefault(spec.name, spec.name)
        for spec in self.fields:
            spellings = spec.synonyms + self.extra_synonyms.get(spec.name, ())
            for spelling in spellings:
                table.setdefault(spelling.strip().lower(), spec.name)
        return table

    def reference_levels(self) -> list[list[ReferenceFieldSpec]]:
        """Group reference fields by dependency depth.

        Level 0 holds fields without a parent; level n holds fields whose parent
        lives in level n-1. A cycle or a dangling parent raises ``ValueError``.
        """
        depth: dict[str, int] = {}
        by_field = {ref.field: ref for ref in self.references}

        def _depth(ref: ReferenceFieldSpec, trail: tuple[str, ...]) -> int:
            if ref.field in depth:
                return depth[ref.field]
            if ref.parent_field is None:
                depth[ref.field] = 0
                return 0
            if ref.parent_field in trail:
                raise ValueError(f"reference dependency cycle at '{ref.field}'")
            parent = by_field.get(ref.parent_field)
            if parent is None:
                raise ValueError(
                    f"reference '{ref.field}' depends on unknown field '{ref.parent_field}'"
                )
            depth[ref.field] = _depth(parent, trail + (ref.field,)) + 1
            return depth[ref.field]

        levels: list[list[ReferenceFieldSpec]] = []
        for ref in self.references:
            d = _depth(ref, ())
            while len(levels) <= d:
                levels.append([])
            levels[d].append(ref)
        return levels
