import asyncio

from worker import main as worker


def test_run_once_summarises_every_step(monkeypatch):
    order = []

    def step(name, value):
        def run():
            order.append(name)
            return value

        return run

    monkeypatch.setattr(
        worker,
        "process_job_expirations",
        step("jobs", {"expired_count": 2, "expiring_jobs": [{"id": 1}], "processed_at": "now"}),
    )
    monkeypatch.setattr(worker, "queue_job_expiration_notifications", step("queue", 1))
    monkeypatch.setattr(worker, "expire_old_subscriptions", step("subs", 3))
    monkeypatch.setattr(worker, "expire_actively_looking", step("looking", 4))
    monkeypatch.setattr(worker, "process_notification_queue", step("send", {"processed": 5, "failed": 1, "total": 6}))

    summary = asyncio.run(worker.run_once())

    assert order == ["jobs", "queue", "subs", "looking", "send"]
    assert summary == {
        "expired_jobs": 2,
        "expiring_jobs": 1,
        "queued_notifications": 1,
        "expired_subscriptions": 3,
        "expired_actively_looking": 4,
        "notifications_sent": 5,
        "notifications_failed": 1,
    }


def test_main_stops_after_one_pass_and_logs_errors(monkeypatch, caplog):
    monkeypatch.setattr(worker, "init_db", lambda: None)
    monkeypatch.setattr(worker, "RUN_ONCE", True)

    async def broken():
        raise RuntimeError("db down")

    monkeypatch.setattr(worker, "run_once", broken)
    with caplog.at_level("ERROR"):
        asyncio.run(worker.main())
    assert any("Error during run" in rec.message for rec in caplog.records)
