import os
import pathlib
import sys
import tempfile

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="timesheet-insights-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"


@pytest.fixture()
def sqlite_engine():
    from backend.app import models  # noqa: F401
    from backend.app.db import Base, engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sqlite_session(sqlite_engine):
    from backend.app.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(sqlite_engine, sqlite_session):
    from backend.app.db import get_db
    from backend.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield sqlite_session

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def tracker_snapshot():
    """
    Raw records as the CRUD layer hands them over (camelCase, dirty values).

    Week of 2026-10-12 (Monday) vs the week before:
      p1: 920 of 1000 spent (92%), due 2026-10-22
      p2: one submitted (pending) entry, due next year
      p3: no budget, no end date
    """
    return {
        "employees": [
            {"id": "u1", "firstName": "Asha", "lastName": "Rao", "hourlyRate": 100},
            {"id": "u2", "firstName": "Ben", "lastName": "Ode", "hourlyRate": "60"},
            {"id": "m1", "firstName": "Mira", "lastName": "Lind", "hourlyRate": 80},
        ],
        "projects": [
            {
                "id": "p1",
                "name": "Portal",
                "budget": 1000,
                "endDate": "2026-10-22",
                "status": "IN_PROGRESS",
                "managerId": "m1",
                "memberIds": ["u1", "u2"],
            },
            {
                "id": "p2",
                "name": "Mobile",
                "budget": "5000",
                "endDate": "2027-01-01T00:00:00.000Z",
                "status": "IN_PROGRESS",
                "managerId": "m2",
                "memberIds": ["u2"],
            },
            {
                "id": "p3",
                "name": "Internal",
                "budget": None,
                "endDate": None,
                "status": "PLANNING",
                "managerId": "m1",
                "memberIds": ["u1"],
            },
        ],
        "entries": [
            {"id": "t1", "userId": "u1", "projectId": "p1", "date": "2026-10-13", "hours": 5, "status": "APPROVED"},
            {"id": "t2", "userId": "u1", "projectId": "p1", "date": "2026-10-14", "hours": "3", "status": "APPROVED"},
            {"id": "t3", "userId": "u2", "projectId": "p1", "date": "2026-10-06", "hours": 2, "status": "APPROVED"},
            {"id": "t4", "userId": "u2", "projectId": "p2", "date": "2026-10-15", "hours": 10, "status": "SUBMITTED"},
            {"id": "t5", "userId": "u1", "projectId": "p3", "date": "2026-10-16", "hours": "abc", "status": "APPROVED"},
            {"id": "t6", "userId": "u1", "projectId": "p1", "date": "bad-date", "hours": 1, "status": "DRAFT"},
        ],
    }
