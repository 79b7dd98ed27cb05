"""Pytest configuration and fixtures for Folio tests.

Test isolation strategy:
- Tests that use db_session get a nested transaction (savepoint) that rolls back
- Tests needing multiple connections use the direct_db fixture
- Route tests use api_client, whose get_db dependency yields db_session

The database comes from DATABASE_URL when it is set (PostgreSQL, as in
deployments). Otherwise a throwaway SQLite file is used. The schema is
created from the ORM metadata.
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.app import create_app
from folio.config import clear_settings_cache
from folio.db.engine import create_db_engine
from folio.db.models import Base
from tests.utils.db import DirectSessionManager, TestDatabaseManager


@pytest.fixture(scope="session")
def database_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Resolve the test database URL and expose it to Settings."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        path = tmp_path_factory.mktemp("db") / "folio_test.sqlite3"
        url = f"sqlite:///{path}"
        os.environ["DATABASE_URL"] = url
    os.environ.setdefault("FOLIO_ENV", "test")
    return url


@pytest.fixture(scope="session")
def engine(database_url: str) -> Generator[Engine, None, None]:
    """Create a database engine for the test session.

    This engine is shared across all tests in the session.
    """
    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine: Engine) -> Generator[Session, None, None]:
    """Provide a database session with savepoint isolation.

    Each test gets a fresh session that is rolled back after the test,
    ensuring no data persists between tests.

    Note: Do not use this fixture for tests that need multiple independent
    connections. Use direct_db instead.
    """
    with TestDatabaseManager(engine) as session:
        yield session


@pytest.fixture
def direct_db(engine: Engine) -> Generator[DirectSessionManager, None, None]:
    """Provide direct database access without savepoint isolation.

    Use for tests that require multiple independent connections that must
    see each other's committed data (e.g., concurrent publishes or slug
    reservations).

    Data registered via register_cleanup() is automatically deleted after
    the test in reverse order.
    """
    manager = DirectSessionManager(engine)
    yield manager
    manager.cleanup()


@pytest.fixture
def client(database_url: str) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client without the internal-access middleware.

    Suitable for endpoints that never touch the database.
    """
    app = create_app(skip_auth_middleware=True)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def api_client(db_session: Session) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client bound to the isolated db_session."""
    app = create_app(skip_auth_middleware=True)
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
