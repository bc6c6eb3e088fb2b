"""
Collection scheduler - runs the collection job periodically or on demand.

Work is unique by name: one periodic and one one-shot instance at most.
Enqueuing work under a name that already has work cancels the old one;
the new one waits for any in-progress run of the old one to finish, so
two instances of the same name never execute concurrently.

Runs that report RETRY are re-attempted after an exponentially growing
delay, up to max_retries times.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional

from flighttracker.jobs.collection_job import FlightDataCollectionJob, JobResult, RunKind
from flighttracker.models import CollectionStateStore

logger = logging.getLogger(__name__)

WORK_NAME_PERIODIC = 'flight_data_collection_periodic'
WORK_NAME_ONE_SHOT = 'flight_data_collection_one_shot'


class WorkState(str, Enum):
    ENQUEUED = 'enqueued'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def is_finished(self) -> bool:
        return self in (WorkState.SUCCEEDED, WorkState.FAILED, WorkState.CANCELLED)


class ScheduledWork:
    """
    One enqueued unit of work running on its own daemon thread.

    interval=None makes it one-shot; otherwise it repeats every interval
    seconds until cancelled.
    """

    def __init__(
        self,
        name: str,
        target: Callable[[], JobResult],
        initial_delay: float = 0,
        interval: Optional[float] = None,
        retry_delay: float = 30.0,
        max_retries: int = 3,
        predecessor: Optional['ScheduledWork'] = None,
    ):
        self.name = name
        self.target = target
        self.initial_delay = initial_delay
        self.interval = interval
        self.retry_delay = retry_delay
        self.max_retries = max_retries

        self.state = WorkState.ENQUEUED
        self.last_result: Optional[JobResult] = None
        self.run_count = 0

        self._predecessor = predecessor
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f'work-{name}', daemon=True)

    @property
    def is_periodic(self) -> bool:
        return self.interval is not None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        """Stop arming further runs. A run already in progress completes."""
        self._cancelled.set()
        if self.state != WorkState.RUNNING and not self.state.is_finished:
            self.state = WorkState.CANCELLED

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _run(self) -> None:
        if self._predecessor is not None:
            self._predecessor.join()
            self._predecessor = None

        if self._cancelled.wait(self.initial_delay):
            self.state = WorkState.CANCELLED
            return

        while not self._cancelled.is_set():
            result = self._run_with_retries()

            if not self.is_periodic:
                self.state = WorkState.SUCCEEDED if result == JobResult.SUCCESS else WorkState.FAILED
                return

            self.state = WorkState.ENQUEUED
            if self._cancelled.wait(self.interval):
                break

        self.state = WorkState.CANCELLED

    def _run_with_retries(self) -> JobResult:
        attempt = 0
        while True:
            self.state = WorkState.RUNNING
            try:
                result = self.target()
            except Exception as e:
                logger.error(f'Work {self.name} raised: {e}')
                result = JobResult.FAILURE

            self.run_count += 1
            self.last_result = result

            if result != JobResult.RETRY or attempt >= self.max_retries:
                return result

            delay = self.retry_delay * (2 ** attempt)
            attempt += 1
            logger.info(f'Work {self.name} asked for retry {attempt}/{self.max_retries} in {delay:.0f}s')
            if self._cancelled.wait(delay):
                return result

    def info(self) -> dict:
        return {
            'name': self.name,
            'state': self.state.value,
            'periodic': self.is_periodic,
            'runs': self.run_count,
            'last_result': self.last_result.value if self.last_result else None,
        }


class CollectionScheduler:
    """
    Manages background flight data collection work.

    Wraps a FlightDataCollectionJob in named, unique ScheduledWork items.
    """

    def __init__(
        self,
        job: FlightDataCollectionJob,
        state_store: CollectionStateStore,
        period_seconds: float = 8 * 3600,
        retry_delay_seconds: float = 30.0,
        max_retries: int = 3,
    ):
        self.job = job
        self.state_store = state_store
        self.period_seconds = period_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.max_retries = max_retries

        self._works: Dict[str, ScheduledWork] = {}
        # Cancelled work whose thread is still alive, kept as the predecessor
        # of the next work enqueued under the same name
        self._retired: Dict[str, ScheduledWork] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        job: FlightDataCollectionJob,
        state_store: CollectionStateStore,
        app_config=None,
    ) -> 'CollectionScheduler':
        if app_config is None:
            from flighttracker.config import config as app_config
        return cls(
            job=job,
            state_store=state_store,
            period_seconds=app_config.collection.period_hours * 3600,
            retry_delay_seconds=app_config.collection.retry_delay_seconds,
            max_retries=app_config.collection.max_retries,
        )

    def _enqueue(
        self,
        name: str,
        kind: RunKind,
        initial_delay: float,
        interval: Optional[float],
    ) -> ScheduledWork:
        with self._lock:
            previous = self._works.get(name) or self._retired.pop(name, None)
            if previous is not None:
                previous.cancel()
                logger.debug(f'Replacing existing work {name}')

            work = ScheduledWork(
                name=name,
                target=lambda: self.job.run(kind),
                initial_delay=initial_delay,
                interval=interval,
                retry_delay=self.retry_delay_seconds,
                max_retries=self.max_retries,
                predecessor=previous,
            )
            self._works[name] = work
            work.start()
            return work

    def schedule_periodic(self, initial_delay_seconds: float = 0) -> ScheduledWork:
        """Schedule the recurring collection, replacing any existing periodic work."""
        work = self._enqueue(
            WORK_NAME_PERIODIC,
            RunKind.PERIODIC,
            initial_delay=initial_delay_seconds,
            interval=self.period_seconds,
        )
        logger.info(
            f'Scheduled periodic flight data collection every {self.period_seconds / 3600:.1f}h '
            f'(first run in {initial_delay_seconds / 60:.0f} min)'
        )
        return work

    def collect_now(self) -> ScheduledWork:
        """Run one collection immediately, replacing any pending one-shot work."""
        work = self._enqueue(WORK_NAME_ONE_SHOT, RunKind.ONE_SHOT, initial_delay=0, interval=None)
        logger.info('Scheduled one-time flight data collection')
        return work

    def cancel_all(self) -> None:
        """Cancel periodic and one-shot work and prune finished entries."""
        with self._lock:
            for name, work in self._works.items():
                work.cancel()
                if work.is_alive:
                    self._retired[name] = work
            self._works.clear()
        logger.info('Cancelled all flight data collection work')

    def is_scheduled(self) -> bool:
        """True while periodic work is active."""
        with self._lock:
            work = self._works.get(WORK_NAME_PERIODIC)
            return work is not None and not work.is_cancelled and not work.state.is_finished

    def get_work(self, name: str) -> Optional[ScheduledWork]:
        with self._lock:
            return self._works.get(name)

    def reset_collection(self) -> None:
        """Zero the persisted counters so collection resumes immediately."""
        self.state_store.reset()
        logger.info('Reset data collection counters')

    def shutdown(self, timeout: float = 5) -> None:
        with self._lock:
            works = list(self._works.values()) + list(self._retired.values())
        self.cancel_all()
        for work in works:
            work.join(timeout)

    @property
    def stats(self) -> dict:
        with self._lock:
            works = {name: work.info() for name, work in self._works.items()}
        return {
            'scheduled': self.is_scheduled(),
            'works': works,
            'collection': self.state_store.snapshot(),
        }
