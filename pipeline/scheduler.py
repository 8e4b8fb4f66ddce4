"""
Refresh scheduler - re-resolves groups of keys on jittered intervals.
Keys whose previous refresh is still running are skipped for that tick.
"""

import logging
import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

# Set up logger
logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Raised when a refresh job is misconfigured."""
    pass


@dataclass
class RefreshJob:
    """A group of keys refreshed every interval_s (+ up to jitter_s)."""
    name: str
    keys: Sequence[str]
    interval_s: float
    jitter_s: float = 0.0
    next_run: float = 0.0

    def __post_init__(self):
        """Validate timing."""
        if self.interval_s <= 0:
            raise SchedulerError(f"{self.name}: interval_s must be positive, got {self.interval_s}")
        if self.jitter_s < 0:
            raise SchedulerError(f"{self.name}: jitter_s must be >= 0, got {self.jitter_s}")
        self.keys = tuple(self.keys)


class RefreshScheduler:
    """
    Runs due jobs on a worker pool.

    `tick(now)` does one scheduling pass and is what tests drive directly;
    `start()` runs ticks on a daemon thread until `stop()`.

    Args:
        refresh: Called with one key per refresh (e.g. the service's get)
        clock: Returns the current time in seconds
        max_workers: Thread pool size
        rng: Random source for jitter
    """

    def __init__(
        self,
        refresh: Callable[[str], Any],
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = 4,
        rng: Optional[random.Random] = None
    ):
        self._refresh = refresh
        self._clock = clock
        self._rng = rng or random.Random()
        self._max_workers = max_workers
        self._executor = self._new_executor()
        self._executor_closed = False

        self._jobs: Dict[str, RefreshJob] = {}
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def jobs(self) -> List[RefreshJob]:
        return list(self._jobs.values())

    def add_job(
        self,
        name: str,
        keys: Sequence[str],
        interval_s: float,
        jitter_s: float = 0.0,
        run_immediately: bool = True
    ) -> RefreshJob:
        """
        Register a job. With run_immediately the first tick runs it,
        otherwise it first runs one jittered interval from now.
        """
        job = RefreshJob(name=name, keys=keys, interval_s=interval_s, jitter_s=jitter_s)
        job.next_run = self._clock() if run_immediately else self._clock() + self.next_delay(job)
        self._jobs[name] = job
        return job

    def next_delay(self, job: RefreshJob) -> float:
        """Seconds until the job's next run: interval + uniform(0, jitter)."""
        return job.interval_s + self._rng.uniform(0, job.jitter_s)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def tick(self, now: Optional[float] = None) -> List[Future]:
        """
        Submit refreshes for every due job.

        Args:
            now: Current time (defaults to the clock)

        Returns:
            Futures of the refreshes submitted on this tick
        """
        if now is None:
            now = self._clock()

        futures = []
        for job in self._jobs.values():
            if now < job.next_run:
                continue

            job.next_run = now + self.next_delay(job)
            for key in job.keys:
                with self._lock:
                    if key in self._in_flight:
                        logger.debug(f"{job.name}: {key} still refreshing, skipped this tick")
                        continue
                    self._in_flight.add(key)

                try:
                    futures.append(self._executor.submit(self._run, job.name, key))
                except RuntimeError as e:
                    # Pool already shut down; the key must not stay marked in flight
                    with self._lock:
                        self._in_flight.discard(key)
                    logger.error(f"{job.name}: could not submit refresh of {key}: {e}")

        return futures

    def start(self, poll_interval_s: float = 1.0) -> None:
        """Run ticks on a background daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        if self._executor_closed:
            self._executor = self._new_executor()
            self._executor_closed = False

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, args=(poll_interval_s,), name='refresh-scheduler', daemon=True
        )
        self._thread.start()
        logger.info(f"Refresh scheduler started with {len(self._jobs)} jobs")

    def stop(self, wait: bool = True) -> None:
        """Stop the background thread and the worker pool."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._executor.shutdown(wait=wait)
        self._executor_closed = True
        logger.info("Refresh scheduler stopped")

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix='refresh')

    def _loop(self, poll_interval_s: float) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(poll_interval_s)

    def _run(self, job_name: str, key: str) -> Any:
        try:
            return self._refresh(key)
        except Exception as e:
            logger.error(f"{job_name}: refresh of {key} failed: {e}")
            raise
        finally:
            with self._lock:
                self._in_flight.discard(key)
