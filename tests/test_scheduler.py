import pytest

from app.core import scheduler as scheduler_module
from app.database import Database
from tests.conftest import enroll


@pytest.fixture
def clean_scheduler():
    yield scheduler_module.scheduler
    scheduler_module.scheduler.remove_all_jobs()


def test_setup_registers_reconciliation_jobs(clean_scheduler):
    scheduler_module.setup_scheduler()

    status = scheduler_module.get_scheduler_status()
    job_ids = {job["id"] for job in status["jobs"]}
    assert job_ids == {"reconcile_participants", "reconcile_winners"}
    assert status["running"] is False


async def test_jobs_skip_without_database(monkeypatch):
    monkeypatch.setattr(Database, "client", None)
    runs = scheduler_module.job_status["participants"]["runs"]

    await scheduler_module.run_reconcile_participants()

    assert scheduler_module.job_status["participants"]["runs"] == runs


async def test_participants_job_repairs_counter(db, alice, confirmed_contest, monkeypatch):
    await enroll(db, confirmed_contest, alice["email"])
    monkeypatch.setattr(Database, "get_db", classmethod(lambda cls: db))

    await scheduler_module.run_reconcile_participants()

    stored = await db.contests.find_one({"_id": confirmed_contest["_id"]})
    assert stored["participants"] == 1
    assert scheduler_module.job_status["participants"]["last_result"]["corrected"]


async def test_winners_job_records_result(db, monkeypatch):
    monkeypatch.setattr(Database, "get_db", classmethod(lambda cls: db))
    runs = scheduler_module.job_status["winners"]["runs"]

    await scheduler_module.run_reconcile_winners()

    assert scheduler_module.job_status["winners"]["runs"] == runs + 1
    assert scheduler_module.job_status["winners"]["last_result"] == {"closed": [], "unmarked": [], "marked": []}
