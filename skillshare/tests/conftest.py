import os

# Every test runs against a throwaway in-memory database
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from skillshare.database import crud
from skillshare.database.db import Base, SessionLocal, engine
from skillshare.main import app
from skillshare.services.session_hub import SessionHub
from skillshare.tests.helpers import FakeWebSocket, run


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.hub = SessionHub()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def hub():
    return app.state.hub


@pytest.fixture
def make_user():
    """Inserts a user directly, skipping password hashing."""

    def _make(username, teach=(), learn=(), rating=0.0):
        with SessionLocal() as db:
            user = crud.create_user(
                db, username, f"{username}@mail.com", "not-a-real-hash", list(teach), list(learn)
            )
            if rating:
                user.rating = rating
                db.commit()
            return user.id

    return _make


@pytest.fixture
def connect(hub):
    """Opens a fake realtime connection for a user and returns (connection_id, socket)."""

    def _connect(user_id):
        ws = FakeWebSocket()
        connection_id = run(hub.connect(ws, user_id))
        return connection_id, ws

    return _connect
