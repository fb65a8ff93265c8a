"""Alembic migration tests.

File named test_zzz_alembic.py to sort LAST in pytest collection order.
Each test drives the alembic CLI against its own SQLite file.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

from learnhub.db import models  # noqa: F401
from learnhub.db.base import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]
HEAD = "001_initial_schema"


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "migrations.db"


def _alembic(db_file: Path, *args: str) -> subprocess.CompletedProcess[str]:
    env = {**os.environ, "LEARNHUB_DATABASE_URL": f"sqlite+aiosqlite:///{db_file}"}
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
        env=env,
    )


def _schema(db_file: Path) -> dict[str, set[str]]:
    engine = create_engine(f"sqlite:///{db_file}")
    try:
        with engine.connect() as conn:
            inspector = inspect(conn)
            return {
                table: {col["name"] for col in inspector.get_columns(table)}
                for table in inspector.get_table_names()
                if table != "alembic_version"
            }
    finally:
        engine.dispose()


def test_alembic_upgrade_head(db_file: Path) -> None:
    """alembic upgrade head succeeds without errors."""
    result = _alembic(db_file, "upgrade", "head")
    assert result.returncode == 0, f"alembic upgrade failed: {result.stderr}"


def test_alembic_current_shows_head(db_file: Path) -> None:
    """alembic current shows the latest revision."""
    assert _alembic(db_file, "upgrade", "head").returncode == 0
    result = _alembic(db_file, "current")
    assert result.returncode == 0
    assert HEAD in result.stdout


def test_migrated_schema_matches_models(db_file: Path) -> None:
    """Every mapped table and column exists after upgrade, and nothing else."""
    assert _alembic(db_file, "upgrade", "head").returncode == 0

    expected = {
        table.name: {col.name for col in table.columns} for table in Base.metadata.sorted_tables
    }
    assert _schema(db_file) == expected


def test_alembic_downgrade_base(db_file: Path) -> None:
    """Downgrading to base removes every application table."""
    assert _alembic(db_file, "upgrade", "head").returncode == 0
    result = _alembic(db_file, "downgrade", "base")
    assert result.returncode == 0, f"alembic downgrade failed: {result.stderr}"
    assert _schema(db_file) == {}
