"""
- Spins up temp test DB
- Create tables before tests run
- Provide a db_session fixture and override FastAPI's get_db so routes use the test session.
- Provide a client fixture (TestClient(app)) that already has the DB override applied.
- Provide in-memory state machine / coordinator fixtures for the core tests.
"""
import os
import random
import pytest
from typing import Generator

# Must be set before codebreak.db is imported (it builds the engine at import time).
# APP_ENV != "local" keeps the dev-only "create tables" startup hook off.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from codebreak.db import Base, get_db, get_session_factory
from codebreak.main import app
from codebreak import models  # noqa: F401
from codebreak.coordinator import MatchCoordinator, MatchLocks
from codebreak.relay import NotificationRelay
from codebreak.state_machine import MatchStateMachine
from codebreak.store import InMemoryMatchRepository

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture(scope="session")
def engine():
    # StaticPool + check_same_thread=False lets Starlette's TestClient and SQLAlchemy
    # share ONE in-memory SQLite database across threads.
    engine = create_engine(
        TEST_DATABASE_URL,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine) -> Generator:
    """Provide a clean session per test with rollback."""
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db = TestingSessionLocal()
    try:
        yield db
        db.rollback()
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _clean_db(engine):
    """The repository commits inside requests, so wipe rows before each test."""
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM moves"))
        conn.execute(text("DELETE FROM matches"))
    yield


@pytest.fixture(autouse=True)
def override_dep(db_session):
    """Force the app to use our test session for every request (and background job)."""
    def _get_db_for_tests():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_for_tests
    app.dependency_overrides[get_session_factory] = lambda: (lambda: db_session)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


# ---- In-memory core ----

@pytest.fixture
def repo():
    return InMemoryMatchRepository()


@pytest.fixture
def machine(repo):
    # fixed seed: the synthetic opponent's secret and guesses are reproducible
    return MatchStateMachine(repo, opponent_rng=random.Random(1234))


@pytest.fixture
def relay():
    return NotificationRelay(queue_size=50)


@pytest.fixture
def coordinator(machine, relay):
    return MatchCoordinator(machine, MatchLocks(), relay, lock_timeout=2.0)


@pytest.fixture
def started_match(machine):
    """Human vs human, both secrets set, alice to move."""
    match = machine.create_match("alice", "bob")
    machine.set_secret(match.id, "alice", "1234")
    return machine.set_secret(match.id, "bob", "9876")
