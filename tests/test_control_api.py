"""Tests for worker control endpoints and task dispatch."""

from types import SimpleNamespace

import pytest

from printbrain.celery_app import celery_app
from printbrain.main import app
from printbrain.services.drip import DripWorker
from printbrain.services.watcher import DriveWatcher


class FakeDriver:
    async def close(self):
        pass


class FakeScanner:
    def __init__(self):
        self.is_running = False
        self.driver = FakeDriver()
        self.calls = 0

    async def run_once(self):
        self.calls += 1
        return {"status": "completed", "inserted": 3}


class FakeShopify:
    async def create_product(self, payload):
        return "1", "gid://shopify/Product/1"

    async def close(self):
        pass


async def no_sleep(seconds):
    return None


@pytest.fixture
def watcher(client_with_db):
    app.state.watcher = DriveWatcher(FakeScanner())
    yield app.state.watcher
    del app.state.watcher


@pytest.fixture
def drip(client_with_db, session_factory):
    app.state.drip = DripWorker(FakeShopify(), session_factory=session_factory, pacing=0, sleep=no_sleep)
    yield app.state.drip
    del app.state.drip


def test_scan_now_records_result(client_with_db, watcher):
    body = client_with_db.post("/api/control/scan").json()
    assert body == {"status": "completed", "inserted": 3}

    status = client_with_db.get("/api/control/watcher/status").json()
    assert status["run_count"] == 1
    assert status["total_synced"] == 3
    assert status["watching"] is False


def test_watcher_start_and_stop(client_with_db, watcher):
    started = client_with_db.post("/api/control/watcher/start", params={"interval": 60}).json()
    assert started["status"] == "started"
    assert started["poll_interval_sec"] == 60

    again = client_with_db.post("/api/control/watcher/start").json()
    assert again["status"] == "already_watching"

    stopped = client_with_db.post("/api/control/watcher/stop").json()
    assert stopped["status"] == "stopped"
    assert stopped["watching"] is False


def test_watcher_interval_bounds(client_with_db, watcher):
    response = client_with_db.post("/api/control/watcher/start", params={"interval": 5})
    assert response.status_code == 422


def test_drip_lifecycle(client_with_db, drip):
    started = client_with_db.post("/api/control/drip/start").json()
    assert started["state"] == "running"
    assert started["running"] is True

    stopped = client_with_db.post("/api/control/drip/stop").json()
    assert stopped["state"] == "stopped"

    status = client_with_db.get("/api/control/drip/status").json()
    assert status["running"] is False
    assert status["rate"] == "0/hr"


def test_drip_pause_when_stopped_is_noop(client_with_db, drip):
    assert client_with_db.post("/api/control/drip/pause").json()["state"] == "stopped"
    assert client_with_db.post("/api/control/drip/resume").json()["state"] == "stopped"


def test_dispatch_task(client_with_db, monkeypatch):
    sent = []

    def send_task(name, *args, **kwargs):
        sent.append(name)
        return SimpleNamespace(id="task-123")

    monkeypatch.setattr(celery_app, "send_task", send_task)

    response = client_with_db.post("/api/control/tasks/enrich")

    assert response.status_code == 202
    assert response.json() == {
        "task_id": "task-123",
        "task_name": "printbrain.tasks.enrich.enrich_untagged",
        "status": "queued",
    }
    assert sent == ["printbrain.tasks.enrich.enrich_untagged"]


def test_dispatch_unknown_task(client_with_db):
    response = client_with_db.post("/api/control/tasks/reboot")
    assert response.status_code == 404
    assert "Available" in response.json()["error"]


def test_task_status(client_with_db, monkeypatch):
    result = SimpleNamespace(
        state="SUCCESS",
        result={"tagged": 10},
        info=None,
        ready=lambda: True,
        successful=lambda: True,
    )
    monkeypatch.setattr(celery_app, "AsyncResult", lambda task_id: result)

    body = client_with_db.get("/api/control/tasks/status/task-123").json()

    assert body == {"task_id": "task-123", "status": "SUCCESS", "result": {"tagged": 10}}


def test_task_progress(client_with_db, monkeypatch):
    result = SimpleNamespace(
        state="PROGRESS",
        result=None,
        info={"tagged": 3},
        ready=lambda: False,
        successful=lambda: False,
    )
    monkeypatch.setattr(celery_app, "AsyncResult", lambda task_id: result)

    body = client_with_db.get("/api/control/tasks/status/abc").json()

    assert body["result"] == {"tagged": 3}
