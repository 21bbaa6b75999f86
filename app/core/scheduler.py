"""
APScheduler Setup for Background Jobs

Periodically heals derived state left behind by partial failures:
- Participant counters: Every 15 minutes
- Winner flags / contest closure: Every 15 minutes

Note: Jobs run with database connection from app context.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Job status tracking
job_status = {
    "last_run": None,
    "participants": {"runs": 0, "last_result": None},
    "winners": {"runs": 0, "last_result": None}
}


async def run_reconcile_participants():
    """Job: Reset participant counters from the payments collection."""
    from app.database import Database
    from app.services.contest.reconciliation import ReconciliationService

    db = Database.get_db()
    if db is None:
        logger.info("[SCHEDULER] Database not connected, skipping reconcile_participants")
        return

    try:
        result = await ReconciliationService(db).reconcile_participants()
    except Exception:
        # Keep the scheduler alive; the next interval retries
        logger.exception("[ERROR] reconcile_participants job failed")
        return

    job_status["participants"]["runs"] += 1
    job_status["participants"]["last_result"] = result
    job_status["last_run"] = datetime.utcnow().isoformat()

    if result["corrected"]:
        logger.info("[SCHEDULER] reconcile_participants: %s contests corrected", len(result["corrected"]))


async def run_reconcile_winners():
    """Job: Finish interrupted winner declarations."""
    from app.database import Database
    from app.services.contest.reconciliation import ReconciliationService

    db = Database.get_db()
    if db is None:
        logger.info("[SCHEDULER] Database not connected, skipping reconcile_winners")
        return

    try:
        result = await ReconciliationService(db).reconcile_winners()
    except Exception:
        logger.exception("[ERROR] reconcile_winners job failed")
        return

    job_status["winners"]["runs"] += 1
    job_status["winners"]["last_result"] = result
    job_status["last_run"] = datetime.utcnow().isoformat()

    changed = len(result["closed"]) + len(result["unmarked"]) + len(result["marked"])
    if changed:
        logger.info("[SCHEDULER] reconcile_winners: %s records repaired", changed)


def setup_scheduler(interval_minutes: int = 15):
    """
    Configure and setup all scheduled jobs.

    Job Schedule:
    - reconcile_participants: Every interval_minutes
    - reconcile_winners: Every interval_minutes
    """
    # Clear any existing jobs
    scheduler.remove_all_jobs()

    scheduler.add_job(
        run_reconcile_participants,
        IntervalTrigger(minutes=interval_minutes),
        id="reconcile_participants",
        name="Reconcile contest participant counters",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    scheduler.add_job(
        run_reconcile_winners,
        IntervalTrigger(minutes=interval_minutes),
        id="reconcile_winners",
        name="Reconcile contest winners",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("[SCHEDULER] Reconciliation scheduler configured with 2 jobs")


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("[SCHEDULER] Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Get current scheduler status for monitoring."""
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None
            }
            for job in scheduler.get_jobs()
        ],
        "job_status": job_status
    }
