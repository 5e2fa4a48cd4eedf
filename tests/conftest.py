"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN

# In-memory SQLite, schema created from model metadata per test; never inherit .env
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["INGEST_USE_SAMPLE_ADAPTER"] = "1"  # offline registry for ingestion tests
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear cached settings and adapter config before and after each test."""
    from stealth.config import get_settings
    from stealth.ingestion.registry import load_adapter_file

    get_settings.cache_clear()
    load_adapter_file.cache_clear()
    yield
    get_settings.cache_clear()
    load_adapter_file.cache_clear()


@pytest.fixture
def db() -> Session:
    """Database session on a fresh schema. Tables are dropped after each test."""
    import stealth.models  # noqa: F401
    from stealth.db.session import Base, SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from stealth.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session."""
    from stealth.db.session import get_db
    from stealth.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def internal_headers() -> dict[str, str]:
    return {"X-Internal-Token": TEST_INTERNAL_JOB_TOKEN}
