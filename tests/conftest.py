import pytest

from contest_engine import db as db_module
from contest_engine.config import settings


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh DuckDB file per test, seeded with the bundled stations."""
    monkeypatch.setattr(settings, "db_path", str(tmp_path / "contest.duckdb"))
    monkeypatch.setattr(settings, "schedule_overrides_path", str(tmp_path / "overrides.json"))
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "cron_secret", "test-secret")
    db_module.close_db()
    conn = db_module.get_db()
    yield conn
    db_module.close_db()
