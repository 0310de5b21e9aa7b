"""Shared fixtures for model tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import sqlalchemy
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Add project root to path
PROJECT_ROOT = str(Path(__file__).resolve().parent.parent.parent)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from models.base import Base  # noqa: E402


@pytest.fixture
def test_db():
    """Create in-memory test database with schema.

    Each test gets a fresh database to avoid conflicts.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )

    # Enable foreign key constraints
    @sqlalchemy.event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def sample_run(test_db):
    """Create a sample KeyValidationRun for testing."""
    from models import KeyValidationRun

    run = KeyValidationRun(
        project="PACA-CA",
        status="INVALID",
        dictionary_version="0.10a",
        error_count=1,
    )
    test_db.add(run)
    test_db.commit()
    test_db.refresh(run)
    return run
