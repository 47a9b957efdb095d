"""
Pytest Configuration and Fixtures.

Shared fixtures: an in-memory SQLite session for the SQL adapters and the router,
plus default in-memory collaborators (see tests/fakes.py).
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assembly.schemas import Requirement
from database import models  # noqa: F401  registers the tables on Base.metadata
from database.database import Base
from tests.fakes import InMemoryArtifactStore


# ─── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def requirement():
    return Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=5)


@pytest.fixture
def artifact_store():
    return InMemoryArtifactStore()


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
