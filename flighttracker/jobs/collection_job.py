"""
Background collection job - samples the last tracked route.

One execution:
1. Cap: stop once MAX_COLLECTIONS successful runs have been recorded
2. Throttle: periodic runs skip if the last success is too recent
3. Anchor: the newest stored snapshot supplies the route
4. Fetch: look up a flight on that route
5. Store: always a new snapshot, then recompute the route aggregate
6. Bookkeeping: bump the success count, stamp the time, purge old data

The job itself never sleeps or retries; it reports a JobResult and the
scheduler decides what happens next.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from flighttracker.errors import ErrorKind
from flighttracker.ingestion.aviationstack_client import FlightApiClient
from flighttracker.ingestion.repository import FlightRepository, StoreMode
from flighttracker.models import CollectionStateStore, now_ms

logger = logging.getLogger(__name__)


class JobResult(str, Enum):
    """Outcome reported to the scheduler."""
    SUCCESS = 'success'
    FAILURE = 'failure'  # do not retry
    RETRY = 'retry'      # re-run later


class RunKind(str, Enum):
    """How the job was triggered."""
    PERIODIC = 'periodic'
    ONE_SHOT = 'one_shot'


class FlightDataCollectionJob:
    """
    Collects one route sample per run, subject to a cap and a throttle.

    Args:
        client: AviationStack client
        repository: Flight repository (store + aggregates)
        state_store: Persisted job bookkeeping
        max_collections: Successful runs after which the job becomes a no-op
        min_interval_ms: Minimum gap between periodic collections (0 disables)
        retention_days: Retention window applied after each success
        clock: Returns the current time in epoch ms
    """

    def __init__(
        self,
        client: FlightApiClient,
        repository: FlightRepository,
        state_store: CollectionStateStore,
        max_collections: int = 10,
        min_interval_ms: int = 2 * 3600 * 1000,
        retention_days: int = 30,
        clock: Callable[[], int] = now_ms,
    ):
        self.client = client
        self.repository = repository
        self.state_store = state_store
        self.max_collections = max_collections
        self.min_interval_ms = min_interval_ms
        self.retention_days = retention_days
        self.clock = clock

        self._last_result: Optional[JobResult] = None
        self._run_count = 0

    @classmethod
    def from_config(
        cls,
        client: FlightApiClient,
        repository: FlightRepository,
        state_store: CollectionStateStore,
        app_config=None,
    ) -> 'FlightDataCollectionJob':
        if app_config is None:
            from flighttracker.config import config as app_config
        return cls(
            client=client,
            repository=repository,
            state_store=state_store,
            max_collections=app_config.collection.max_collections,
            min_interval_ms=app_config.collection.min_interval_ms,
            retention_days=app_config.retention.days,
        )

    def run(self, kind: RunKind = RunKind.PERIODIC) -> JobResult:
        """Execute one collection cycle."""
        self._run_count += 1
        try:
            result = self._collect(kind)
        except Exception as e:
            logger.exception(f'Unexpected error in collection job: {e}')
            result = JobResult.FAILURE

        self._last_result = result
        return result

    def _collect(self, kind: RunKind) -> JobResult:
        logger.debug(f'Starting flight data collection ({kind.value})')

        collection_count = self.state_store.collection_count
        if collection_count >= self.max_collections:
            logger.info(
                f'Maximum data collection count reached ({self.max_collections}). '
                f'Skipping collection.'
            )
            return JobResult.SUCCESS

        now = self.clock()
        if kind == RunKind.PERIODIC and self.min_interval_ms > 0:
            last_collection = self.state_store.last_collection_time
            if last_collection > 0 and now - last_collection < self.min_interval_ms:
                logger.info(
                    f'Last collection {(now - last_collection) / 60000:.0f} min ago, '
                    f'minimum interval is {self.min_interval_ms / 60000:.0f} min. Skipping.'
                )
                return JobResult.SUCCESS

        latest = self.repository.latest_record()
        if latest is None:
            logger.warning('No tracked flight to anchor a route on')
            return JobResult.FAILURE

        departure, arrival = latest.departure_airport, latest.arrival_airport
        logger.info(f'Collecting flight data for route {departure} -> {arrival}')

        fetch = self.client.fetch_by_route(departure, arrival)

        if fetch.is_not_found:
            logger.warning(f'No flights found on route {departure} -> {arrival}')
            return JobResult.FAILURE

        if fetch.is_error:
            logger.warning(f'Fetch failed for route {departure} -> {arrival}: {fetch.error_kind.value} {fetch.detail}')
            return JobResult.RETRY

        outcome = self.repository.record_flight(fetch.flight, StoreMode.INITIAL_TRACKING, captured_at=now)
        if not outcome.stored:
            logger.warning(f'Collected flight not stored: {outcome.reason}')
            return JobResult.FAILURE if outcome.error_kind == ErrorKind.VALIDATION else JobResult.RETRY

        count = self.state_store.record_success(now)
        logger.info(f'Stored {fetch.flight.flight_iata} on {departure} -> {arrival}. '
                    f'Collection count: {count}/{self.max_collections}')

        self.repository.cleanup_old_records(self.retention_days, now=now)
        return JobResult.SUCCESS

    @property
    def stats(self) -> dict:
        return {
            'runs': self._run_count,
            'last_result': self._last_result.value if self._last_result else None,
            'max_collections': self.max_collections,
            'min_interval_ms': self.min_interval_ms,
        }
