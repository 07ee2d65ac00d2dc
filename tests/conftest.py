import os
import tempfile
from pathlib import Path

# must be set before taxidesk.config is imported
_tmp_dir = tempfile.mkdtemp(prefix="taxidesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_tmp_dir) / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

import main
from taxidesk.db import Base, SessionLocal, engine


class RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, phone, code):
        self.sent.append((phone, code))

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sender(monkeypatch):
    recording = RecordingSender()
    monkeypatch.setattr(main.otp_service, "sender", recording)
    return recording


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def sign_in(sender):
    def _sign_in(client, phone, full_name="Test User", role="driver1"):
        client.post("/login/request-code", data={"phone": phone})
        return client.post(
            "/login/verify",
            data={"code": sender.last_code, "full_name": full_name, "role": role},
        )

    return _sign_in


@pytest.fixture
def admin_client(client, sign_in):
    sign_in(client, "9876543210", "Owner", "admin")
    return client
