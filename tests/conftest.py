"""
Pytest configuration: add backend to path, point DATA_DIR and the SQLite DB at test
locations, recreate tables for every test and keep notification delivery off the network.
"""
import os
import sys
from pathlib import Path

import pytest

# Project root = parent of tests/
ROOT = Path(__file__).resolve().parent.parent
BACKEND = ROOT / "backend"
DATA = ROOT / "data"
sys.path.insert(0, str(BACKEND))
os.environ["DATA_DIR"] = str(DATA)
# Use a test DB
os.environ["SQLITE_DB_PATH"] = str(DATA / "test_dogcatify.db")

from dogcatify.db import Base, engine, init_db  # noqa: E402
from dogcatify.services import notifications  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {"status": "ok"}
        self.text = str(self._payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        import httpx
        if self.status_code >= 400:
            request = httpx.Request("POST", "http://test")
            raise httpx.HTTPStatusError(f"HTTP {self.status_code}", request=request, response=httpx.Response(self.status_code, request=request))


@pytest.fixture(autouse=True)
def fresh_db():
    """Drop and recreate all tables so every test starts empty."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture(autouse=True)
def sent_notifications(monkeypatch):
    """Capture notification webhook posts instead of hitting the network."""
    sent = []

    def fake_post(url, json=None, **kwargs):
        sent.append({"url": url, "json": json})
        return FakeResponse(200)

    monkeypatch.setattr(notifications.httpx, "post", fake_post)
    return sent


@pytest.fixture
def partner():
    from dogcatify.services.directory import create_partner
    return create_partner("p1", "Clínica San Martín", "veterinary", "vet@example.com", 10.0)


@pytest.fixture
def pet():
    from dogcatify.services.directory import create_pet
    return create_pet("pet1", "u1", "Firulais", "dog", "Mestizo")
