import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from listseerr.db.repositories import AutomaticProcessingSettings
from listseerr.services.scheduler import GLOBAL_PROCESSING_JOB_ID, ProcessingScheduler

HOURLY = AutomaticProcessingSettings(enabled=True, schedule="0 * * * *", timezone="UTC")


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class FakeSleep:
    """Advances the clock instead of waiting; blocks for good after `ticks` sleeps."""

    def __init__(self, clock, ticks=0):
        self.clock = clock
        self.ticks = ticks
        self.delays = []
        self.exhausted = asyncio.Event()

    async def __call__(self, delay):
        if len(self.delays) >= self.ticks:
            self.exhausted.set()
            await asyncio.get_running_loop().create_future()
        self.delays.append(delay)
        self.clock.now += timedelta(seconds=delay)


class SettingsReader:
    def __init__(self, config):
        self.config = config
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if isinstance(self.config, Exception):
            raise self.config
        return self.config


def _scheduler(config, process_all=None, ticks=0, clock=None):
    clock = clock or FakeClock()
    sleep = FakeSleep(clock, ticks)
    reader = SettingsReader(config)

    async def noop():
        pass

    scheduler = ProcessingScheduler(reader, process_all or noop, sleep=sleep, clock=clock)
    return scheduler, clock, sleep, reader


def test_enabled_schedule_installs_global_job():
    async def scenario():
        scheduler, clock, sleep, _ = _scheduler(HOURLY)
        await scheduler.reload()
        await sleep.exhausted.wait()
        jobs = scheduler.list_active_jobs()
        next_run = scheduler.get_next_run()
        await scheduler.close()
        return jobs, next_run

    jobs, next_run = asyncio.run(scenario())

    assert jobs == [{"job_id": GLOBAL_PROCESSING_JOB_ID, "next_run": next_run, "state": "idle"}]
    assert next_run == datetime(2025, 1, 1, 1, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("config", [
    AutomaticProcessingSettings(enabled=False, schedule="0 * * * *", timezone="UTC"),
    AutomaticProcessingSettings(enabled=True, schedule=None, timezone="UTC"),
    AutomaticProcessingSettings(enabled=True, schedule="not a cron", timezone="UTC"),
    AutomaticProcessingSettings(enabled=True, schedule="0 * * * *", timezone="Nowhere/Special"),
    None,
    RuntimeError("database is locked"),
])
def test_reload_without_usable_settings_leaves_no_jobs(config):
    async def scenario():
        scheduler, _, _, _ = _scheduler(config)
        await scheduler.reload()
        jobs = scheduler.list_active_jobs()
        await scheduler.close()
        return jobs, scheduler.get_next_run()

    assert asyncio.run(scenario()) == ([], None)


def test_reload_is_idempotent_and_joins_in_flight_reload():
    async def scenario():
        scheduler, _, _, reader = _scheduler(HOURLY)
        await asyncio.gather(scheduler.reload(), scheduler.reload())
        concurrent_reads = reader.calls
        await scheduler.reload()
        jobs = scheduler.list_active_jobs()
        await scheduler.close()
        return concurrent_reads, jobs

    concurrent_reads, jobs = asyncio.run(scenario())

    assert concurrent_reads == 1
    assert [job["job_id"] for job in jobs] == [GLOBAL_PROCESSING_JOB_ID]


def test_reload_picks_up_new_settings():
    async def scenario():
        scheduler, _, _, reader = _scheduler(HOURLY)
        await scheduler.reload()
        first = scheduler.get_next_run()
        reader.config = AutomaticProcessingSettings(enabled=True, schedule="0 6 * * *", timezone="UTC")
        await scheduler.reload()
        second = scheduler.get_next_run()
        reader.config = AutomaticProcessingSettings(enabled=False, schedule="0 6 * * *", timezone="UTC")
        await scheduler.reload()
        third = scheduler.list_active_jobs()
        await scheduler.close()
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first == datetime(2025, 1, 1, 1, 0, tzinfo=timezone.utc)
    assert second == datetime(2025, 1, 1, 6, 0, tzinfo=timezone.utc)
    assert third == []


def test_job_fires_once_per_tick():
    fired = []
    clock = FakeClock()

    async def process_all():
        fired.append(clock())

    async def scenario():
        scheduler, _, sleep, _ = _scheduler(HOURLY, process_all=process_all, ticks=3, clock=clock)
        await scheduler.reload()
        await sleep.exhausted.wait()
        next_run = scheduler.get_next_run()
        await scheduler.close()
        return sleep.delays, next_run

    delays, next_run = asyncio.run(scenario())

    assert fired == [datetime(2025, 1, 1, hour, 0, tzinfo=timezone.utc) for hour in (1, 2, 3)]
    assert delays == [3600.0, 3600.0, 3600.0]
    assert next_run == datetime(2025, 1, 1, 4, 0, tzinfo=timezone.utc)


def test_failing_callback_keeps_job_scheduled():
    calls = []

    async def process_all():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("Jellyseerr is not configured")

    async def scenario():
        scheduler, _, sleep, _ = _scheduler(HOURLY, process_all=process_all, ticks=2)
        await scheduler.reload()
        await sleep.exhausted.wait()
        jobs = scheduler.list_active_jobs()
        await scheduler.close()
        return jobs

    jobs = asyncio.run(scenario())

    assert len(calls) == 2
    assert [job["job_id"] for job in jobs] == [GLOBAL_PROCESSING_JOB_ID]


def test_unschedule_lets_running_callback_finish():
    async def scenario():
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def process_all():
            started.set()
            await release.wait()
            finished.append(True)

        scheduler, _, _, _ = _scheduler(HOURLY, process_all=process_all, ticks=5)
        await scheduler.reload()
        task = scheduler._jobs[GLOBAL_PROCESSING_JOB_ID].task
        await started.wait()
        state_while_firing = scheduler.list_active_jobs()[0]["state"]

        scheduler.unschedule(GLOBAL_PROCESSING_JOB_ID)
        assert scheduler.list_active_jobs() == []
        release.set()
        await task
        await scheduler.close()
        return state_while_firing, finished, task.cancelled()

    state_while_firing, finished, cancelled = asyncio.run(scenario())

    assert state_while_firing == "firing"
    assert finished == [True]
    assert cancelled is False


def test_reload_while_firing_does_not_overlap_runs():
    async def scenario():
        started = asyncio.Event()
        release = asyncio.Event()
        in_flight = []
        peaks = []

        async def process_all():
            in_flight.append(True)
            peaks.append(len(in_flight))
            if len(peaks) == 1:
                started.set()
                await release.wait()
            in_flight.pop()

        scheduler, _, sleep, _ = _scheduler(HOURLY, process_all=process_all, ticks=3)
        await scheduler.reload()
        await started.wait()

        await scheduler.reload()
        while len(sleep.delays) < 2:
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        runs_while_draining = len(peaks)
        state_while_waiting = scheduler.list_active_jobs()[0]["state"]

        release.set()
        await sleep.exhausted.wait()
        await scheduler.close()
        return runs_while_draining, state_while_waiting, peaks

    runs_while_draining, state_while_waiting, peaks = asyncio.run(scenario())

    assert runs_while_draining == 1
    assert state_while_waiting == "firing"
    assert peaks == [1, 1, 1]


def test_unschedule_unknown_job_is_a_noop():
    async def scenario():
        scheduler, _, _, _ = _scheduler(HOURLY)
        await scheduler.reload()
        scheduler.unschedule(42)
        jobs = scheduler.list_active_jobs()
        await scheduler.close()
        return jobs

    assert len(asyncio.run(scenario())) == 1


def test_closed_scheduler_refuses_reload():
    async def scenario():
        scheduler, _, _, _ = _scheduler(HOURLY)
        await scheduler.reload()
        await scheduler.close()
        assert scheduler.list_active_jobs() == []
        with pytest.raises(RuntimeError):
            await scheduler.reload()

    asyncio.run(scenario())
