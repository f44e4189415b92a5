from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..db.protocol import Backend
from ..errors import ReferenceCreationError
from ..models.processing_result import ErrorDetail, ErrorKind
from ..models.reference import CreationCandidate, ReferenceSet

"""Master-data materializer.

Creates each missing reference entity exactly once per (kind, normalized name)
per run and folds the new ids back into the run's ReferenceSets.

- Candidates are grouped by key; the group's first row is the one cited in
  error messages and its first spelling becomes the display name.
- A dependent kind (sub-department, item) is created with the parent id most
  commonly paired with it in the file; ties go to the first one seen.
- One failed create is recorded and skipped; the rest carry on.
"""

__all__ = [
    "MaterializeResult",
    "dedupe_candidates",
    "materialize",
]

logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    created: dict[tuple[str, str], Any] = field(default_factory=dict)  # key -> new id
    counts: dict[str, int] = field(default_factory=dict)  # kind -> created count
    errors: list[ErrorDetail] = field(default_factory=list)


@dataclass
class _Group:
    first: CreationCandidate
    parents: Counter = field(default_factory=Counter)

    def parent_id(self) -> Any | None:
        if not self.parents:
            return None
        return self.parents.most_common(1)[0][0]


def dedupe_candidates(candidates: Iterable[CreationCandidate]) -> list[_Group]:
    groups: dict[tuple[str, str], _Group] = {}
    for cand in candidates:
        group = groups.get(cand.key)
        if group is None:
            group = groups[cand.key] = _Group(first=cand)
        elif cand.line_number < group.first.line_number:
            group.first = cand
        if cand.parent_id is not None:
            group.parents[cand.parent_id] += 1
    return list(groups.values())


def materialize(
    candidates: Iterable[CreationCandidate],
    backend: Backend,
    reference_sets: dict[str, ReferenceSet],
    result: MaterializeResult | None = None,
) -> MaterializeResult:
    """Create the distinct missing references; safe to call once per level.

    Passing the previous ``result`` accumulates counts across levels.
    """
    result = result if result is not None else MaterializeResult()
    for group in dedupe_candidates(candidates):
        cand = group.first
        name = " ".join(cand.name.split())
        ref_set = reference_sets.setdefault(cand.kind, ReferenceSet(cand.kind))
        if cand.key in result.created or ref_set.lookup(name) is not None:
            continue
        try:
            new_id = backend.create_reference(cand.kind, name, parent_id=group.parent_id())
        except ReferenceCreationError as e:
            logger.warning("could not create %s '%s': %s", cand.kind, name, e.message)
            result.errors.append(
                ErrorDetail(
                    cand.line_number,
                    f"Failed to create {cand.label or cand.kind} '{name}': {e.message}",
                    ErrorKind.REFERENCE_CREATION,
                )
            )
            continue
        ref_set.add(new_id, name)
        result.created[cand.key] = new_id
        result.counts[cand.kind] = result.counts.get(cand.kind, 0) + 1
        logger.info("created %s '%s'", cand.kind, name)
    return result
