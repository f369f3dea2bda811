"""
In-process cron scheduler for automatic list processing.

The scheduler keeps a table of active jobs keyed by an integer id. Job 0 is
the global automatic processing job derived from the stored settings; it is
rebuilt on every reload().

Firing contract: each tick awaits the callback once. An exception raised by
the callback is logged with its traceback and the job stays installed, so the
next tick fires normally. There is no retry and no backoff. Runs never
overlap: a job installed by reload() while the replaced job is still firing
waits for that run to finish before its own first run.
"""
import asyncio
import enum
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional
import logging

from listseerr.core.errors import InvalidCronExpressionError
from listseerr.services.cron import CronExpression

logger = logging.getLogger(__name__)

GLOBAL_PROCESSING_JOB_ID = 0


class JobState(str, enum.Enum):
    IDLE = "idle"
    FIRING = "firing"


@dataclass
class ScheduledJob:
    job_id: int
    cron: CronExpression
    next_run: Optional[datetime] = None
    state: JobState = JobState.IDLE
    active: bool = True
    task: Optional[asyncio.Task] = field(default=None, repr=False)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingScheduler:
    def __init__(
        self,
        settings_reader: Callable,
        process_all: Callable[[], Awaitable[None]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        settings_reader: returns an object with `enabled`, `schedule` and
            `timezone` (sync or async).
        process_all: coroutine function processing every enabled list.
        """
        self._settings_reader = settings_reader
        self._process_all = process_all
        self._sleep = sleep
        self._clock = clock
        self._jobs: Dict[int, ScheduledJob] = {}
        self._reload_task: Optional[asyncio.Task] = None
        # Runs of replaced jobs that are still finishing
        self._draining: set = set()
        self._run_lock = asyncio.Lock()
        self._closed = False

    async def _read_settings(self):
        result = self._settings_reader()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def reload(self):
        """
        Rebuild the job table from the stored settings. Concurrent calls join
        the reload already in flight instead of starting another one.
        """
        if self._closed:
            raise RuntimeError("Scheduler is closed")
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = asyncio.ensure_future(self._reload())
        task = self._reload_task
        await asyncio.shield(task)

    async def _reload(self):
        self.unschedule_all()

        try:
            config = await self._read_settings()
        except Exception:
            logger.exception("Could not read automatic processing settings, no job scheduled")
            return

        if not config or not config.enabled:
            logger.info("Automatic processing disabled")
            return
        if not config.schedule:
            logger.warning("Automatic processing enabled without a schedule, no job scheduled")
            return

        try:
            cron = CronExpression(config.schedule, config.timezone)
        except InvalidCronExpressionError as e:
            logger.error(f"Not scheduling automatic processing: {e}")
            return

        self._install(GLOBAL_PROCESSING_JOB_ID, cron)
        job = self._jobs[GLOBAL_PROCESSING_JOB_ID]
        logger.info(
            f"Automatic processing scheduled with '{cron.expression}' ({cron.tz.key}), next run {job.next_run}"
        )

    def _install(self, job_id: int, cron: CronExpression):
        job = ScheduledJob(job_id=job_id, cron=cron)
        job.next_run = cron.next_after(self._clock())
        job.task = asyncio.ensure_future(self._run_job(job))
        self._jobs[job_id] = job

    async def _run_job(self, job: ScheduledJob):
        while job.active:
            delay = (job.next_run - self._clock()).total_seconds()
            await self._sleep(max(0.0, delay))

            fired_at = job.next_run
            job.state = JobState.FIRING
            try:
                # Wait out a run started by a job that a reload replaced
                async with self._run_lock:
                    if not job.active:
                        return
                    logger.info(f"Job {job.job_id} firing (scheduled for {fired_at})")
                    await self._process_all()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Job {job.job_id} callback failed, keeping schedule")
            finally:
                job.state = JobState.IDLE

            if not job.active:
                return
            # Never fire twice for the same slot, even if the callback was quick
            now = self._clock()
            job.next_run = job.cron.next_after(max(now, fired_at))

    def unschedule(self, job_id: int):
        job = self._jobs.pop(job_id, None)
        if job is None:
            return
        job.active = False
        # A run in progress is allowed to finish; the loop exits afterwards
        if job.state == JobState.IDLE and job.task is not None and not job.task.done():
            job.task.cancel()
        elif job.task is not None and not job.task.done():
            self._draining.add(job.task)
            job.task.add_done_callback(self._draining.discard)
        logger.info(f"Job {job_id} unscheduled")

    def unschedule_all(self):
        for job_id in list(self._jobs):
            self.unschedule(job_id)

    def list_active_jobs(self) -> List[dict]:
        return [
            {"job_id": job.job_id, "next_run": job.next_run, "state": job.state.value}
            for job in sorted(self._jobs.values(), key=lambda j: j.job_id)
        ]

    def get_next_run(self, job_id: int = GLOBAL_PROCESSING_JOB_ID) -> Optional[datetime]:
        job = self._jobs.get(job_id)
        return job.next_run if job else None

    async def close(self):
        self._closed = True
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        tasks.extend(self._draining)
        self.unschedule_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Scheduler closed")
