from __future__ import annotations

import time

import numpy as np
import pytest

from bulk_import.db.memory import InMemoryBackend
from bulk_import.models.config_models import EngineConfig
from bulk_import.services.orchestrator import ReconciliationRun

"""Performance smoke test: reconciliation throughput on the in-memory backend.

5,000 synthetic employee rows over a handful of departments and positions.
The budget is loose on purpose; the assertions that matter are the call
counts: reference loads and existence lookups stay bulk, never per row.
"""

ROWS = 5_000
BUDGET_SECONDS = 30.0


def generate_employee_csv(rows: int = ROWS, seed: int = 42) -> str:
    rng = np.random.default_rng(seed)
    departments = np.array(["Engineering", "engineering ", "Finance", "OPS", "Human Resources"])
    positions = np.array(["Driver", "Technician", "Supervisor", "Clerk"])
    dept = departments[rng.integers(0, len(departments), rows)]
    pos = positions[rng.integers(0, len(positions), rows)]
    days = rng.integers(1, 28, rows)
    lines = ["code,name,department,position,joining_date"]
    for i in range(rows):
        lines.append(f"E{i:06d},Person {i} Example,{dept[i]},{pos[i]},2024-03-{days[i]:02d}")
    return "\n".join(lines) + "\n"


@pytest.mark.perf
def test_throughput_budget(employees_schema):
    backend = InMemoryBackend()
    text = generate_employee_csv()
    start = time.perf_counter()
    report = ReconciliationRun(employees_schema, backend, EngineConfig(batch_size=500)).run(text)
    elapsed = time.perf_counter() - start

    assert report.succeeded == ROWS
    assert elapsed < BUDGET_SECONDS, f"{ROWS} rows took {elapsed:.1f}s"
    assert report.master_data_created == {"departments": 4, "positions": 4}
    assert len(backend.create_calls) == 8
    assert len(backend.lookup_calls) == len(employees_schema.reference_kinds)
    assert backend.existing_calls == [("employees", ROWS)]
    assert report.total_batches == ROWS // 500
