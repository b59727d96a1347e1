import os

# The app module builds its engine at import time; point it at SQLite before that happens.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient #gives you a fake http client that can call your FastAPI routes without running a real server.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.security import create_access_token
from app.db.base import Base
from app.main import app
from app.services.slot_locks import clear_slot_locks


def _memory_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def db_session():
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
        clear_slot_locks()


@pytest.fixture() #test client
def client(): #fake http client
    engine = _memory_engine() #create isolated DB
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_slot_locks()
    engine.dispose()


def _auth_headers(role: str, subject: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject, role)}"}


@pytest.fixture()
def admin_headers():
    return _auth_headers("admin", "admin-1")


@pytest.fixture()
def teacher_headers():
    return _auth_headers("teacher", "teacher-1")


@pytest.fixture()
def headers_for():
    return _auth_headers
