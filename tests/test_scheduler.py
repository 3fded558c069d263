import unittest


class _StubSyncService:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    def sync_all(self):
        from app.services.sync_service import ReconcileResult

        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")
        return ReconcileResult()


class SyncSchedulerTests(unittest.TestCase):
    def setUp(self):
        from app.scheduler import SyncScheduler

        self.scheduler = SyncScheduler()

    def tearDown(self):
        self.scheduler.stop()

    def test_positive_interval_schedules_reconcile_job(self):
        from app.scheduler import JOB_ID

        self.scheduler.start(_StubSyncService(), interval_minutes=15)

        job = self.scheduler.scheduler.get_job(JOB_ID)
        self.assertIsNotNone(job)
        self.assertEqual(job.trigger.interval.total_seconds(), 15 * 60)

    def test_zero_interval_schedules_nothing(self):
        self.scheduler.start(_StubSyncService(), interval_minutes=0)
        self.assertEqual(self.scheduler.scheduler.get_jobs(), [])

    def test_presync_runs_one_pass(self):
        service = _StubSyncService()
        result = self.scheduler.run_presync(service)

        self.assertEqual(service.calls, 1)
        self.assertEqual(result.as_dict()["status"], "success")

    def test_job_failures_are_logged_not_raised(self):
        self.scheduler.sync_service = _StubSyncService(fail=True)
        self.scheduler._reconcile_job()
        self.assertEqual(self.scheduler.sync_service.calls, 1)


if __name__ == "__main__":
    unittest.main()
