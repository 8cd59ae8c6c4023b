import os
import tempfile

# Point the app at a throwaway SQLite file and enable test mode before any
# backend module reads the settings.
_fd, _db_path = tempfile.mkstemp(suffix=".db", prefix="device_hub_test_")
os.close(_fd)
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["TESTING"] = "1"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["MAINTENANCE_SHARED_SECRET"] = "test-maintenance-secret"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from core.context import RequestContext
from core.security import hash_password
from db.base import Base
from db.session import engine, SessionLocal
from models.device import Device
from models.user import User
from main import app

NOW = datetime(2026, 1, 15, 10, 5, 0)


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _make_user(db, name, email, password="secret123"):
    user = User(name=name, email=email, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def alice(db):
    return _make_user(db, "Alice", "alice@example.com")


@pytest.fixture
def bob(db):
    return _make_user(db, "Bob", "bob@example.com")


def ctx_for(user, now=NOW):
    return RequestContext(user_id=user.id, ip_address="127.0.0.1", user_agent="pytest", now=now)


_mac_counter = {"n": 0}


@pytest.fixture
def make_device(db):
    def _make(owner, name="Sensor node", mac=None):
        _mac_counter["n"] += 1
        device = Device(
            user_id=owner.id,
            name=name,
            mac_address=mac or "AA:BB:CC:00:00:%02X" % _mac_counter["n"],
            created_at=NOW,
            updated_at=NOW,
        )
        db.add(device)
        db.commit()
        db.refresh(device)
        return device

    return _make
