import unittest
from datetime import datetime, timezone
from types import SimpleNamespace

from sqlalchemy.orm import sessionmaker

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class _StubSyncService:
    def __init__(self, result):
        self.result = result
        self.calls = 0

    def sync_all(self):
        self.calls += 1
        return self.result


def _client(services, session_factory):
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from app.api import sync
    from app.models.base import get_db

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app = FastAPI()
    app.include_router(sync.router)
    app.dependency_overrides[get_db] = _get_db
    app.state.services = services
    return TestClient(app)


def _session_factory():
    from app.models.base import init_db, make_engine

    engine = make_engine("sqlite://")
    init_db(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


class SyncApiTests(unittest.TestCase):
    def test_trigger_runs_reconciliation(self):
        from app.services.sync_service import ReconcileResult

        result = ReconcileResult()
        result.incr("repositories")
        result.add_error("tidb", 7, RuntimeError("update rejected"))
        sync_service = _StubSyncService(result)
        client = _client(SimpleNamespace(sync_service=sync_service), _session_factory())

        resp = client.post("/api/sync/trigger")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(sync_service.calls, 1)
        data = resp.json()
        self.assertEqual(data["status"], "failed")
        self.assertEqual(data["errors"], [{"repository": "tidb", "issue_number": 7, "error": "update rejected"}])

    def test_list_logs_filters_by_repository(self):
        from app.models.sync_log import SyncSource, SyncStatus
        from app.services.sync_log_writer import SyncLogWriter

        factory = _session_factory()
        writer = SyncLogWriter(factory)
        writer.write(SyncStatus.SUCCESS, SyncSource.RECONCILE, "3 issues synced", repository="tidb")
        writer.write(
            SyncStatus.FAILED,
            SyncSource.WEBHOOK,
            "Issue not exists",
            repository="tikv",
            issue_number=9,
            action="issues.closed",
        )

        client = _client(SimpleNamespace(), factory)
        resp = client.get("/api/sync/logs", params={"repository": "tikv"})

        self.assertEqual(resp.status_code, 200)
        rows = resp.json()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status"], "failed")
        self.assertEqual(rows[0]["source"], "webhook")
        self.assertEqual(rows[0]["issue_number"], 9)
        self.assertEqual(rows[0]["action"], "issues.closed")

        self.assertEqual(len(client.get("/api/sync/logs").json()), 2)

    def test_watermark(self):
        from app.services.watermark import WatermarkStore

        factory = _session_factory()
        store = WatermarkStore(factory, now=lambda: NOW)
        client = _client(SimpleNamespace(watermark=store), factory)

        data = client.get("/api/sync/watermark").json()
        self.assertEqual(data, {"enabled": True, "last_sync_time": None, "since": "2024-02-01T12:00:00Z"})

        store.write()
        data = client.get("/api/sync/watermark").json()
        self.assertEqual(data["last_sync_time"], "2024-05-01T12:00:00Z")
        self.assertEqual(data["since"], "2024-04-30T12:00:00Z")


if __name__ == "__main__":
    unittest.main()
