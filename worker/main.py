import asyncio
import logging
import os
from typing import Dict

from dotenv import load_dotenv

from app.notifications import process_notification_queue
from core.database import (
    expire_actively_looking,
    expire_old_subscriptions,
    init_db,
    process_job_expirations,
    queue_job_expiration_notifications,
)

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

# -------- CONFIG --------
CHECK_INTERVAL = int(os.getenv("WORKER_INTERVAL_SECONDS", "300"))  # seconds between passes
RUN_ONCE = os.getenv("WORKER_RUN_ONCE", "false").lower() == "true"
# ------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")


async def run_once() -> Dict:
    """
    One scheduler pass: close expired jobs, queue expiry notices, expire
    subscriptions and actively-looking flags, then drain the notification queue.
    """
    expirations = await asyncio.to_thread(process_job_expirations)
    queued = await asyncio.to_thread(queue_job_expiration_notifications)
    expired_subs = await asyncio.to_thread(expire_old_subscriptions)
    expired_looking = await asyncio.to_thread(expire_actively_looking)
    delivery = await asyncio.to_thread(process_notification_queue)

    summary = {
        "expired_jobs": expirations["expired_count"],
        "expiring_jobs": len(expirations["expiring_jobs"]),
        "queued_notifications": queued,
        "expired_subscriptions": expired_subs,
        "expired_actively_looking": expired_looking,
        "notifications_sent": delivery["processed"],
        "notifications_failed": delivery["failed"],
    }
    log.info("Cycle complete: %s", summary)
    return summary


async def main():
    init_db()

    while True:
        try:
            await run_once()
        except Exception as e:
            log.exception("Error during run: %s", e)

        if RUN_ONCE:
            break

        log.info("Sleeping %s seconds", CHECK_INTERVAL)
        await asyncio.sleep(CHECK_INTERVAL)


if __name__ == "__main__":
    asyncio.run(main())
