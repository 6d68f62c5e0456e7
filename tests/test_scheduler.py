import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.services.scheduler_service import DailyTrigger, Job, SchedulerService, schedule_compliance_jobs
from app.utiles.custom_helpers import _now_utc

MONDAY_7AM = datetime(2025, 6, 2, 7, 0, tzinfo=timezone.utc)


def test_daily_trigger_fires_later_today():
    assert DailyTrigger(hour=9).next_run(MONDAY_7AM) == datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


def test_daily_trigger_rolls_over_to_tomorrow():
    after = MONDAY_7AM.replace(hour=9)
    assert DailyTrigger(hour=9).next_run(after) == datetime(2025, 6, 3, 9, 0, tzinfo=timezone.utc)


def test_weekly_trigger_same_day_and_next_week():
    monday_8am = DailyTrigger(hour=8, weekday=0)
    assert monday_8am.next_run(MONDAY_7AM) == datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)
    assert monday_8am.next_run(MONDAY_7AM.replace(hour=10)) == datetime(2025, 6, 9, 8, 0, tzinfo=timezone.utc)


def test_weekly_trigger_sunday():
    sunday_1am = DailyTrigger(hour=1, weekday=6)
    assert sunday_1am.next_run(MONDAY_7AM) == datetime(2025, 6, 8, 1, 0, tzinfo=timezone.utc)


def test_trigger_accepts_naive_datetimes_as_utc():
    naive = MONDAY_7AM.replace(tzinfo=None)
    assert DailyTrigger(hour=9).next_run(naive) == datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


def test_describe():
    assert DailyTrigger(hour=9).describe() == "daily 09:00 UTC"
    assert DailyTrigger(hour=8, minute=30, weekday=0).describe() == "MON 08:30 UTC"


async def test_run_job_records_errors_without_raising():
    async def broken():
        raise RuntimeError("smtp down")

    job = Job(name="broken", trigger=DailyTrigger(hour=1), task=broken)
    scheduler = SchedulerService()

    assert await scheduler.run_job(job) is None
    assert job.last_error == "smtp down"
    assert job.run_count == 1
    assert job.last_run is not None


async def test_run_job_returns_result_and_clears_error():
    async def ok():
        return {"sent": 3}

    job = Job(name="ok", trigger=DailyTrigger(hour=1), task=ok, last_error="previous failure")
    assert await SchedulerService().run_job(job) == {"sent": 3}
    assert job.last_error is None


async def test_schedule_job_replaces_existing_job_of_same_name():
    scheduler = SchedulerService()

    async def task():
        return None

    first = scheduler.schedule_job("nightly", DailyTrigger(hour=2), task)
    second = scheduler.schedule_job("nightly", DailyTrigger(hour=3), task)
    await asyncio.sleep(0.01)

    assert list(scheduler.jobs) == ["nightly"]
    assert scheduler.jobs["nightly"] is second
    assert first.loop_task.cancelled()
    assert scheduler.is_running("nightly")

    scheduler.stop_all_jobs()


async def test_stop_all_jobs():
    scheduler = SchedulerService()

    async def task():
        return None

    scheduler.schedule_job("a", DailyTrigger(hour=2), task)
    scheduler.schedule_job("b", DailyTrigger(hour=3), task)

    scheduler.stop_all_jobs()

    assert scheduler.jobs == {}
    assert scheduler.get_job_status("a") is None
    assert not scheduler.stop_job("a")


async def test_schedule_compliance_jobs_registers_three_jobs(services):
    scheduler = schedule_compliance_jobs(SchedulerService(), services.documents)
    try:
        statuses = scheduler.get_all_job_statuses()
        assert set(statuses) == {
            "check_expiring_documents",
            "generate_compliance_reports",
            "mark_expired_documents",
        }
        assert statuses["check_expiring_documents"]["schedule"] == "daily 09:00 UTC"
        assert statuses["generate_compliance_reports"]["schedule"] == "MON 08:00 UTC"
        assert statuses["mark_expired_documents"]["schedule"] == "SUN 01:00 UTC"
        assert all(s["run_count"] == 0 for s in statuses.values())
    finally:
        scheduler.stop_all_jobs()


async def test_compliance_job_runs_against_document_service(services):
    scheduler = schedule_compliance_jobs(SchedulerService(), services.documents)
    try:
        job = scheduler.jobs["check_expiring_documents"]
        assert await scheduler.run_job(job) == {"total": 0, "sent": 0, "failed": 0}
    finally:
        scheduler.stop_all_jobs()


@pytest.mark.parametrize("weekday", range(7))
def test_weekly_trigger_always_lands_on_its_weekday(weekday):
    assert DailyTrigger(hour=0, weekday=weekday).next_run(MONDAY_7AM).weekday() == weekday


async def test_stop_job_cancels_in_flight_runs():
    scheduler = SchedulerService()
    release = asyncio.Event()

    async def slow():
        await release.wait()

    job = scheduler.schedule_job("slow", DailyTrigger(hour=2), slow)
    job.next_run = _now_utc() - timedelta(seconds=1)
    await asyncio.sleep(0.01)

    runs = list(job.runs)
    assert len(runs) == 1

    scheduler.stop_all_jobs()
    await asyncio.sleep(0.01)

    assert runs[0].cancelled()
    assert job.runs == set()
