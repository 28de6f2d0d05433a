from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from stockledger import database as db_module
from stockledger.database import Base, SessionLocal, enable_sqlite_savepoints, init_db
from stockledger.models.user import Role
from stockledger.services import auth_service, mutation_service

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(test_engine)

# Ensure application code uses the test engine
db_module.engine = test_engine
SessionLocal.configure(bind=test_engine)


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Each test starts from an empty schema."""
    init_db(bind=test_engine)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from stockledger.main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Factory: create a user with ``role`` and return Bearer headers for it.

    The session is closed before returning so no transaction stays open on the
    shared in-memory connection while the app handles requests.
    """
    counter = {"n": 0}

    def _make(role: Role = Role.STOCKMASTER) -> dict:
        counter["n"] += 1
        session = SessionLocal()
        try:
            user = auth_service.create_user(
                session, f"{role.value.lower()}{counter['n']}@example.com", "secret", role=role.value
            )
            token = auth_service.create_access_token(user.id, user.role)
        finally:
            session.close()
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(sku: str, name: str | None = None, **fields):
        data = {"sku": sku, "name": name or f"Product {sku}", **fields}
        return mutation_service.create(db_session, "Product", data, actor_id="tester")

    return _make


@pytest.fixture
def make_location(db_session):
    def _make(code: str, **fields):
        data = {"code": code, "name": fields.pop("name", f"Location {code}"), **fields}
        return mutation_service.create(db_session, "Location", data, actor_id="tester")

    return _make
