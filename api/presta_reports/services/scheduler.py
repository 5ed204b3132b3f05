# presta_reports/services/scheduler.py
"""
SyncScheduler - periodic execution of named sync jobs on the event loop.

Each job gets one loop task: run, wait the job's current interval, run
again. The interval is a per-job cell read at the top of every wait, so a
reconfiguration applies without touching any timer. A job never runs twice
at the same time: scheduled ticks arriving while a run is in flight are
skipped, explicit refreshes queue behind it.
"""
from __future__ import annotations
import asyncio
import enum
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from presta_reports.exceptions import IntervalValidationError, UnknownJobError

logger = logging.getLogger(__name__)

JobFunc = Callable[..., Awaitable[Any]]

MAX_INTERVAL_MS = 24 * 60 * 60 * 1000


class JobState(str, enum.Enum):
    idle = "idle"
    running = "running"
    failed = "failed"


def validate_interval(value: Any) -> int:
    """Positive integer milliseconds up to one day, given as int or ASCII digit string."""
    if isinstance(value, bool):
        raise IntervalValidationError(value)
    if isinstance(value, int):
        ms = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdecimal():
        try:
            ms = int(value.strip())
        except ValueError:
            # longer than the int conversion digit limit
            raise IntervalValidationError(value) from None
    else:
        raise IntervalValidationError(value)
    if ms <= 0:
        raise IntervalValidationError(value, "Interval must be a positive number of milliseconds.")
    if ms > MAX_INTERVAL_MS:
        raise IntervalValidationError(value, f"Interval must not exceed {MAX_INTERVAL_MS} ms (24 hours).")
    return ms


def readable_interval(ms: int) -> str:
    return f"{ms // 60000} minutes {(ms % 60000) / 1000:g} seconds"


class SyncJob:
    def __init__(self, name: str, func: JobFunc, interval_ms: int):
        self.name = name
        self.func = func
        self.interval_ms = interval_ms
        self.state = JobState.idle
        self.run_count = 0
        self.skipped_count = 0
        self.last_started_at: Optional[datetime] = None
        self.last_finished_at: Optional[datetime] = None
        self.last_duration_ms: Optional[int] = None
        self.last_error: Optional[str] = None
        self.last_result: Any = None
        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def status(self) -> Dict[str, Any]:
        summary = getattr(self.last_result, "summary", None)
        return {
            "name": self.name,
            "state": self.state.value,
            "interval_ms": self.interval_ms,
            "interval_readable": readable_interval(self.interval_ms),
            "run_count": self.run_count,
            "skipped_count": self.skipped_count,
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_duration_ms": self.last_duration_ms,
            "last_error": self.last_error,
            "last_result": summary() if callable(summary) else None,
        }


class SyncScheduler:
    def __init__(self, default_interval_ms: int):
        self.default_interval_ms = validate_interval(default_interval_ms)
        self._jobs: Dict[str, SyncJob] = {}
        self._stopping = False
        self._started = False

    # =========================================================================
    # Registry
    # =========================================================================

    def register(self, name: str, func: JobFunc, interval_ms: Optional[int] = None) -> SyncJob:
        if name in self._jobs:
            raise ValueError(f"Sync job already registered: {name}")
        ms = validate_interval(interval_ms) if interval_ms is not None else self.default_interval_ms
        job = SyncJob(name, func, ms)
        self._jobs[name] = job
        if self._started:
            job._task = asyncio.create_task(self._loop(job), name=f"sync:{name}")
        return job

    def job(self, name: str) -> SyncJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(name) from None

    @property
    def job_names(self) -> List[str]:
        return list(self._jobs)

    def status(self, name: str) -> Dict[str, Any]:
        return self.job(name).status()

    def statuses(self) -> Dict[str, Dict[str, Any]]:
        return {name: job.status() for name, job in self._jobs.items()}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start one loop per job; every job runs immediately."""
        if self._started:
            return
        self._started = True
        self._stopping = False
        for job in self._jobs.values():
            logger.info(f"Setting up automatic {job.name} updates every {job.interval_ms} ms")
            job._task = asyncio.create_task(self._loop(job), name=f"sync:{job.name}")

    async def stop(self) -> None:
        """Stop the loops. An in-flight run is allowed to finish."""
        self._stopping = True
        tasks = []
        for job in self._jobs.values():
            job._wakeup.set()
            if job._task is not None:
                tasks.append(job._task)
                job._task = None
        if tasks:
            await asyncio.gather(*tasks)
        self._started = False

    async def _loop(self, job: SyncJob) -> None:
        while not self._stopping:
            await self.trigger(job.name)
            # reconfigurations during the run only change the period of the next wait
            job._wakeup.clear()
            if self._stopping:
                break
            try:
                await asyncio.wait_for(job._wakeup.wait(), timeout=job.interval_ms / 1000)
            except asyncio.TimeoutError:
                pass
            except Exception:
                # park until the next reconfiguration or stop
                logger.exception(f"Cannot schedule next {job.name} update, waiting for a new interval")
                await job._wakeup.wait()

    # =========================================================================
    # Runs
    # =========================================================================

    async def _execute(self, job: SyncJob, kwargs: Dict[str, Any], propagate: bool) -> Any:
        async with job._lock:
            job.state = JobState.running
            job.last_started_at = datetime.now(timezone.utc)
            started = time.monotonic()
            try:
                result = await job.func(**kwargs)
            except Exception as e:
                job.state = JobState.failed
                job.last_error = f"{type(e).__name__}: {e}"
                job.last_result = None
                if propagate:
                    logger.error(f"Sync job {job.name} failed: {job.last_error}")
                    raise
                logger.exception(f"Error during scheduled {job.name} update")
                return None
            finally:
                job.run_count += 1
                job.last_finished_at = datetime.now(timezone.utc)
                job.last_duration_ms = int((time.monotonic() - started) * 1000)
            job.state = JobState.idle
            job.last_error = None
            job.last_result = result
            logger.info(
                f"{job.name} update completed in {job.last_duration_ms} ms. "
                f"Next update in {job.interval_ms} ms"
            )
            return result

    async def trigger(self, name: str) -> bool:
        """
        Scheduled tick: run the job unless a run is already in flight.

        Returns False when the tick was skipped. Failures are logged and
        recorded on the job, never raised.
        """
        job = self.job(name)
        if job.busy:
            job.skipped_count += 1
            logger.warning(f"Skipping {name} tick: previous run still in progress")
            return False
        await self._execute(job, {}, propagate=False)
        return True

    async def run_now(self, name: str, **kwargs: Any) -> Any:
        """Explicit refresh: wait for any in-flight run, run once, propagate errors."""
        job = self.job(name)
        return await self._execute(job, kwargs, propagate=True)

    # =========================================================================
    # Reconfiguration
    # =========================================================================

    def set_interval(self, name: str, value: Any) -> int:
        """
        Swap the job's period. Invalid values raise IntervalValidationError and
        leave the job untouched. An idle job runs right away; an in-flight run
        is not interrupted and the new period starts after it.
        """
        job = self.job(name)
        ms = validate_interval(value)
        old = job.interval_ms
        job.interval_ms = ms
        job._wakeup.set()
        logger.info(f"Interval time for {name} changed from {old} ms to {ms} ms")
        return ms

    def set_interval_all(self, value: Any) -> int:
        ms = validate_interval(value)
        self.default_interval_ms = ms
        for name in self._jobs:
            self.set_interval(name, ms)
        return ms
