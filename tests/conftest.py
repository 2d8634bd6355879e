import os

# Must be set before backend.config is imported
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("EXCEL_FILE_PATH", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.db import get_db
from backend.main import app
from backend.models import Base, User
from backend.seed import seed_users
from backend.services.auth import create_access_token
from backend.services.row_sources import RowSource
from backend.services.scheduler import LeadImportScheduler


PASSWORD = "password123"


class ListSource(RowSource):
    """In-memory sheet: ``rows`` are the data rows under the header (sheet rows 2..n)."""

    def __init__(self, rows):
        self.rows = list(rows)
        self.fetch_calls = []

    def fetch_rows(self, start_row):
        self.fetch_calls.append(start_row)
        return self.rows[max(start_row - 1, 0):]

    def count_rows(self):
        return len(self.rows) + 1


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    seed_users(db, password=PASSWORD)
    return {u.role: u for u in db.query(User).all()}


@pytest.fixture
def admin(users):
    return users["admin"]


@pytest.fixture
def manager(users):
    return users["manager"]


@pytest.fixture
def agent(users):
    return users["agent"]


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def scheduler(session_factory):
    return LeadImportScheduler(session_factory=session_factory, plan_resolver=lambda db: None)


@pytest.fixture
def client(session_factory, scheduler):

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    previous = app.state.scheduler
    app.state.scheduler = scheduler

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.scheduler = previous
