# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from bulk_import.config.entities import ASSETS, EMPLOYEES, SIM_CARDS
from bulk_import.db.memory import InMemoryBackend
from bulk_import.logging.init import reset_logging
from bulk_import.models.config_models import EngineConfig


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 50
max_workers: 2
null_sentinels: ["N/A", "-", "none"]
error_detail_limit: 10
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
reference_tables:
  departments:
    table: departments
    defaults: {description: "Auto-created from employee import"}
  sub_departments:
    table: sub_departments
    parent_column: department_id
entity_tables:
  employees:
    table: employees
synonyms:
  employees:
    mobile_number: ["contact no"]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def employees_schema():
    return EMPLOYEES


@pytest.fixture()
def assets_schema():
    return ASSETS


@pytest.fixture()
def sim_schema():
    return SIM_CARDS


@pytest.fixture()
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig(batch_size=100, max_workers=4)


@pytest.fixture()
def make_csv():
    """Build CSV text from a header line and data lines."""
    def _make(header: str, *rows: str) -> str:
        return "\n".join([header, *rows]) + "\n"
    return _make
