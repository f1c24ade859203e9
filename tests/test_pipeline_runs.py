"""Tests for run bookkeeping, the change-token store and job locks."""

import json

import pytest
import redis

from printbrain.models import PipelineRun
from printbrain.services.locks import single_flight
from printbrain.services.pipeline_runs import list_runs, track_run
from printbrain.services.sync_state import SyncStateStore


def test_completed_run_records_counters(session_factory):
    with track_run("drive_scan", session_factory=session_factory, metadata={"mode": "delta"}) as run:
        run.update(total=10, processed=10, new_assets=3)

    with session_factory() as db:
        row = db.query(PipelineRun).one()
        assert row.status == "completed"
        assert row.total_items == 10
        assert row.finished_at is not None
        assert row.metadata_json == {"mode": "delta", "new_assets": 3}


def test_errors_mark_run_completed_with_errors(session_factory):
    with track_run("enrichment", session_factory=session_factory) as run:
        run.update(total=5, processed=4, errors=1)

    with session_factory() as db:
        assert db.query(PipelineRun).one().status == "completed_with_errors"


def test_exception_marks_run_failed(session_factory):
    with pytest.raises(RuntimeError):
        with track_run("shopify_sync", session_factory=session_factory):
            raise RuntimeError("boom")

    with session_factory() as db:
        row = db.query(PipelineRun).one()
        assert row.status == "failed"
        assert row.metadata_json["error"] == "boom"


def test_list_runs_newest_first(session_factory, test_db):
    for run_type in ("a", "b", "c"):
        with track_run(run_type, session_factory=session_factory):
            pass

    assert [run.run_type for run in list_runs(test_db, limit=2)] == ["c", "b"]


class TestSyncStateStore:
    def test_missing_file(self, tmp_path):
        assert SyncStateStore(tmp_path / "token.json").load() is None

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "state" / "token.json"
        store = SyncStateStore(path)
        store.save("page-42")

        assert store.load() == "page-42"
        data = json.loads(path.read_text())
        assert set(data) == {"pageToken", "savedAt"}
        assert not path.with_name("token.json.tmp").exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text("{not json")
        assert SyncStateStore(path).load() is None

    def test_clear(self, tmp_path):
        store = SyncStateStore(tmp_path / "token.json")
        store.save("x")
        store.clear()
        assert store.load() is None


class FakeLock:
    def __init__(self, held, expire_early=False):
        self.held = held
        self.expire_early = expire_early
        self.released = False

    def acquire(self, blocking=True):
        if self.held:
            return False
        self.held = True
        return True

    def release(self):
        if self.expire_early:
            raise redis.exceptions.LockError("Cannot release an unlocked lock")
        self.released = True


class FakeRedis:
    def __init__(self, lock):
        self._lock = lock
        self.names = []

    def lock(self, name, timeout=None):
        self.names.append(name)
        return self._lock


def test_single_flight_acquires_and_releases():
    lock = FakeLock(held=False)
    client = FakeRedis(lock)

    with single_flight("drive_scan", client=client) as acquired:
        assert acquired is True

    assert lock.released
    assert client.names == ["printbrain:lock:drive_scan"]


def test_single_flight_skips_when_held():
    lock = FakeLock(held=True)

    with single_flight("drive_scan", client=FakeRedis(lock)) as acquired:
        assert acquired is False

    assert not lock.released


def test_expired_lock_is_not_an_error():
    with single_flight("enrich", client=FakeRedis(FakeLock(held=False, expire_early=True))) as acquired:
        assert acquired
