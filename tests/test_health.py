"""Tests for the health endpoint."""

import pytest

import printbrain.main as main_module


class FakeRedis:
    def __init__(self, healthy=True):
        self.healthy = healthy

    def ping(self):
        if not self.healthy:
            raise ConnectionError("redis down")
        return True


@pytest.fixture
def healthy_db(monkeypatch, test_engine):
    monkeypatch.setattr(main_module, "engine", test_engine)


def test_health_ok(client_with_db, healthy_db, monkeypatch):
    monkeypatch.setattr(main_module.redis, "from_url", lambda url: FakeRedis())

    response = client_with_db.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["db"] == "connected"
    assert body["redis"] == "connected"
    assert body["watcher"] is None


def test_health_degraded_without_redis(client_with_db, healthy_db, monkeypatch):
    monkeypatch.setattr(main_module.redis, "from_url", lambda url: FakeRedis(healthy=False))

    body = client_with_db.get("/health").json()

    assert body["status"] == "degraded"
    assert body["redis"].startswith("error")


def test_health_unavailable_without_db(client_with_db, monkeypatch, test_engine):
    class BrokenEngine:
        def connect(self):
            raise RuntimeError("connection refused")

    monkeypatch.setattr(main_module, "engine", BrokenEngine())
    monkeypatch.setattr(main_module.redis, "from_url", lambda url: FakeRedis())

    response = client_with_db.get("/health")

    assert response.status_code == 503
    assert response.json()["db"].startswith("error")
