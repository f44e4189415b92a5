from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..db.protocol import Backend
from ..models.import_record import ImportRecord
from ..models.reference import CreationCandidate, ReferenceSet
from ..models.schema_models import EntitySchema, ReferenceFieldSpec

"""Reference resolver.

Maps free-text reference columns to backend ids using run-owned ReferenceSets.
It never writes: a miss on a creatable field becomes a CreationCandidate, a miss
on a non-creatable field (employee codes, SIM projects) becomes a row warning
and a null reference.

The orchestrator calls ``resolve`` once per dependency level, materializes the
candidates, then calls it again with ``pending_only=True`` to pick up the ids
the materializer folded into the sets.
"""

__all__ = [
    "load_reference_sets",
    "lookup",
    "resolve",
]

logger = logging.getLogger(__name__)


def load_reference_sets(backend: Backend, kinds: Iterable[str]) -> dict[str, ReferenceSet]:
    """Bulk load one ReferenceSet per kind. One backend call per kind."""
    sets: dict[str, ReferenceSet] = {}
    for kind in kinds:
        if kind in sets:
            continue
        sets[kind] = ReferenceSet(kind, backend.lookup_reference(kind))
        logger.debug("reference set %s: %d entries", kind, len(sets[kind]))
    return sets


def lookup(ref: ReferenceFieldSpec, ref_set: ReferenceSet, value: str):
    hit = ref_set.lookup(value)
    if hit is None and ref.partial_match:
        hit = ref_set.partial_lookup(value)
    return hit


def resolve(
    records: Sequence[ImportRecord],
    schema: EntitySchema,
    reference_sets: dict[str, ReferenceSet],
    fields: Sequence[ReferenceFieldSpec] | None = None,
    *,
    pending_only: bool = False,
) -> tuple[Sequence[ImportRecord], list[CreationCandidate]]:
    """Fill ``record.resolved`` for ``fields`` (all reference fields by default).

    Args:
        records: valid records; enriched in place.
        schema: entity descriptor.
        reference_sets: run-owned sets keyed by kind (missing kinds are created empty).
        fields: subset of reference fields, e.g. one dependency level.
        pending_only: second pass after materialization; only creatable fields that
            are still unresolved are looked up again and no candidates or warnings
            are produced.

    Returns:
        (records, candidates). Candidates are per row; deduplication happens in
        the materializer.
    """
    targets = list(schema.references if fields is None else fields)
    candidates: list[CreationCandidate] = []
    for ref in targets:
        ref_set = reference_sets.setdefault(ref.kind, ReferenceSet(ref.kind))
        for record in records:
            name = record.references.get(ref.field)
            if pending_only:
                if not ref.create_missing or name is None or record.resolved.get(ref.field) is not None:
                    continue
                record.resolved[ref.field] = lookup(ref, ref_set, name)
                continue
            if name is None:
                record.resolved[ref.field] = None
                continue
            hit = lookup(ref, ref_set, name)
            record.resolved[ref.field] = hit
            if hit is not None:
                continue
            if ref.create_missing:
                parent_id = record.resolved.get(ref.parent_field) if ref.parent_field else None
                candidates.append(
                    CreationCandidate(ref.kind, name, record.line_number, ref.label, parent_id)
                )
            else:
                record.warnings.append(f"{ref.label} '{name}' not found")
    return records, candidates
