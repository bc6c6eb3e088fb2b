"""
Flight repository - stores snapshots and maintains route statistics.

Pipeline stages for one observed flight:
1. Normalize: payload -> FlightSnapshot (or rejection)
2. Store: insert, or supersede the latest row of the same flight number
3. Recompute: rebuild the route aggregate from every stored snapshot
4. Cleanup: remove data older than the retention window (on demand)

Store and recompute run in separate sessions. A crash between them
leaves a snapshot without a refreshed aggregate, which the next
recompute repairs since aggregates are fully derived from snapshots.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Tuple

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import IntegrityError

from flighttracker.errors import ErrorKind
from flighttracker.ingestion.aviationstack_client import FlightPayload
from flighttracker.ingestion.normalize import FlightSnapshot, normalize
from flighttracker.models.flight_record import MS_PER_DAY
from flighttracker.models import (
    CollectionStateStore,
    Database,
    FlightRecord,
    RouteStatistic,
    get_retention_cutoff_ms,
    now_ms,
)

logger = logging.getLogger(__name__)


class StoreMode(str, Enum):
    """
    How a snapshot is written.

    INITIAL_TRACKING always inserts. PERIODIC_UPDATE supersedes the most
    recent row for the same flight number so a minute-by-minute poll keeps
    one live row per tracked flight.
    """
    INITIAL_TRACKING = 'initial_tracking'
    PERIODIC_UPDATE = 'periodic_update'


@dataclass
class StoreOutcome:
    """Result of recording one payload."""
    stored: bool
    record_id: Optional[int] = None
    route: Optional[Tuple[str, str]] = None
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> 'StoreOutcome':
        return cls(stored=False, error_kind=ErrorKind.VALIDATION, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> 'StoreOutcome':
        return cls(stored=False, error_kind=ErrorKind.UNKNOWN, reason=reason)


class FlightRepository:
    """
    Single entry point for reading and writing flight data.

    Write failures are caught at this boundary, logged and counted, and
    reported through StoreOutcome instead of propagating.
    """

    def __init__(
        self,
        database: Database,
        state_store: Optional[CollectionStateStore] = None,
    ):
        self.database = database
        self.state_store = state_store

        self._stored_count = 0
        self._rejected_count = 0
        self._failure_count = 0

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_flight(
        self,
        payload: FlightPayload,
        mode: StoreMode = StoreMode.INITIAL_TRACKING,
        captured_at: Optional[int] = None,
    ) -> StoreOutcome:
        """Normalize, store and aggregate one payload."""
        try:
            result = normalize(payload, captured_at=captured_at)
        except Exception as e:
            self._failure_count += 1
            logger.error(f'Normalization failed for {payload.flight_iata}: {e}')
            return StoreOutcome.failed(str(e))

        if result.is_rejected:
            self._rejected_count += 1
            logger.info(f'Rejected flight {payload.flight_iata}: {result.rejected_reason}')
            return StoreOutcome.rejected(result.rejected_reason)

        snapshot = result.snapshot
        try:
            previous_route = None
            if mode == StoreMode.PERIODIC_UPDATE:
                previous = self.latest_record_for_flight(snapshot.flight_number)
                previous_route = previous.route if previous else None

            record = self.save_snapshot(snapshot, mode)
            self.recompute_route_statistics(
                snapshot.departure_airport,
                snapshot.arrival_airport,
                departure_city=snapshot.departure_city,
                arrival_city=snapshot.arrival_city,
                fallback_minutes=snapshot.flight_time_minutes,
            )
            if previous_route is not None and previous_route != snapshot.route:
                # The superseded row moved off its old route
                self.recompute_route_statistics(*previous_route)
            if self.state_store is not None:
                self.state_store.set_last_route(*snapshot.route)
        except Exception as e:
            self._failure_count += 1
            logger.error(f'Failed to store flight {snapshot.flight_number}: {e}')
            return StoreOutcome.failed(str(e))

        self._stored_count += 1
        return StoreOutcome(stored=True, record_id=record.id, route=snapshot.route)

    def save_snapshot(self, snapshot: FlightSnapshot, mode: StoreMode) -> FlightRecord:
        """
        Persist a snapshot.

        In PERIODIC_UPDATE mode the latest row for the flight number keeps
        its id and takes the new field values and capture time.
        """
        with self.database.session() as session:
            existing = None
            if mode == StoreMode.PERIODIC_UPDATE:
                existing = session.execute(
                    select(FlightRecord)
                    .where(FlightRecord.flight_number == snapshot.flight_number)
                    .order_by(desc(FlightRecord.captured_at), desc(FlightRecord.id))
                    .limit(1)
                ).scalar_one_or_none()

            if existing is not None:
                for column, value in snapshot.to_row().items():
                    setattr(existing, column, value)
                record = existing
                logger.debug(f'Superseded record {record.id} for {snapshot.flight_number}')
            else:
                record = FlightRecord(**snapshot.to_row())
                session.add(record)

            session.flush()

        return record

    def recompute_route_statistics(
        self,
        departure_airport: str,
        arrival_airport: str,
        departure_city: Optional[str] = None,
        arrival_city: Optional[str] = None,
        fallback_minutes: Optional[int] = None,
    ) -> Optional[RouteStatistic]:
        """
        Rebuild the aggregate for one route from all of its snapshots.

        flight_count is the number of distinct flight numbers; the average
        is the mean duration over every snapshot with a known duration.
        A route left with no snapshots loses its aggregate and returns None.
        """
        route_filter = (
            (FlightRecord.departure_airport == departure_airport) &
            (FlightRecord.arrival_airport == arrival_airport)
        )

        with self.database.session() as session:
            flight_count = session.execute(
                select(func.count(func.distinct(FlightRecord.flight_number))).where(route_filter)
            ).scalar_one()

            average = session.execute(
                select(func.avg(FlightRecord.flight_time_minutes)).where(
                    route_filter,
                    FlightRecord.flight_time_minutes.is_not(None),
                )
            ).scalar_one_or_none()

            average_minutes = int(average) if average is not None else (fallback_minutes or 0)

            statistic = session.execute(
                select(RouteStatistic).where(
                    RouteStatistic.departure_airport == departure_airport,
                    RouteStatistic.arrival_airport == arrival_airport,
                )
            ).scalar_one_or_none()

            if flight_count == 0:
                if statistic is not None:
                    session.delete(statistic)
                    logger.debug(f'Removed route statistics for {departure_airport}->{arrival_airport}')
                return None

            if statistic is None:
                statistic = RouteStatistic(
                    departure_airport=departure_airport,
                    departure_city=departure_city or 'Unknown City',
                    arrival_airport=arrival_airport,
                    arrival_city=arrival_city or 'Unknown City',
                )
                session.add(statistic)

            statistic.flight_count = flight_count
            statistic.average_flight_time_minutes = average_minutes
            statistic.last_updated = now_ms()

            try:
                session.flush()
            except IntegrityError:
                # Another writer created the row first; update theirs instead
                session.rollback()
                return self.recompute_route_statistics(
                    departure_airport, arrival_airport,
                    departure_city, arrival_city, fallback_minutes,
                )

        logger.debug(f'Route statistics updated: {statistic!r}')
        return statistic

    def cleanup_old_records(self, days_to_keep: int = 30, now: Optional[int] = None) -> Tuple[int, int]:
        """
        Remove data past the retention window.

        Snapshots are aged on captured_at, aggregates on last_updated.
        Returns (records_deleted, statistics_deleted).
        """
        cutoff = get_retention_cutoff_ms(days_to_keep, now=now)

        with self.database.session() as session:
            records_deleted = session.execute(
                delete(FlightRecord).where(FlightRecord.captured_at < cutoff)
            ).rowcount
            statistics_deleted = session.execute(
                delete(RouteStatistic).where(RouteStatistic.last_updated < cutoff)
            ).rowcount

        if records_deleted or statistics_deleted:
            logger.info(
                f'Cleanup: removed {records_deleted} old flight records, '
                f'{statistics_deleted} old route statistics'
            )

        return records_deleted, statistics_deleted

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_records(self, limit: Optional[int] = None) -> List[FlightRecord]:
        """All snapshots, newest first."""
        query = select(FlightRecord).order_by(desc(FlightRecord.captured_at), desc(FlightRecord.id))
        if limit is not None:
            query = query.limit(max(limit, 0))
        with self.database.session() as session:
            return list(session.execute(query).scalars().all())

    def latest_record(self) -> Optional[FlightRecord]:
        records = self.list_records(limit=1)
        return records[0] if records else None

    def latest_record_for_flight(self, flight_number: str) -> Optional[FlightRecord]:
        with self.database.session() as session:
            return session.execute(
                select(FlightRecord)
                .where(FlightRecord.flight_number == flight_number.strip().upper())
                .order_by(desc(FlightRecord.captured_at), desc(FlightRecord.id))
                .limit(1)
            ).scalar_one_or_none()

    def records_for_route(self, departure_airport: str, arrival_airport: str) -> List[FlightRecord]:
        """Snapshots for one route, oldest first."""
        with self.database.session() as session:
            return list(session.execute(
                select(FlightRecord)
                .where(
                    FlightRecord.departure_airport == departure_airport,
                    FlightRecord.arrival_airport == arrival_airport,
                )
                .order_by(FlightRecord.captured_at, FlightRecord.id)
            ).scalars().all())

    def list_route_statistics(self) -> List[RouteStatistic]:
        """All route aggregates, busiest route first."""
        with self.database.session() as session:
            return list(session.execute(
                select(RouteStatistic).order_by(
                    desc(RouteStatistic.flight_count),
                    RouteStatistic.departure_airport,
                    RouteStatistic.arrival_airport,
                )
            ).scalars().all())

    def get_route_statistic(self, departure_airport: str, arrival_airport: str) -> Optional[RouteStatistic]:
        with self.database.session() as session:
            return session.execute(
                select(RouteStatistic).where(
                    RouteStatistic.departure_airport == departure_airport,
                    RouteStatistic.arrival_airport == arrival_airport,
                )
            ).scalar_one_or_none()

    def unique_routes(self) -> List[Tuple[str, str]]:
        """Every distinct (departure, arrival) pair with stored snapshots."""
        with self.database.session() as session:
            rows = session.execute(
                select(FlightRecord.departure_airport, FlightRecord.arrival_airport)
                .distinct()
                .order_by(FlightRecord.departure_airport, FlightRecord.arrival_airport)
            ).all()
        return [(row[0], row[1]) for row in rows]

    def average_flight_time_for_route(
        self,
        departure_airport: str,
        arrival_airport: str,
        days_back: int = 7,
        now: Optional[int] = None,
    ) -> Optional[int]:
        """Mean duration in minutes over snapshots captured in the last days_back days."""
        start = (now if now is not None else now_ms()) - days_back * MS_PER_DAY
        with self.database.session() as session:
            average = session.execute(
                select(func.avg(FlightRecord.flight_time_minutes)).where(
                    FlightRecord.departure_airport == departure_airport,
                    FlightRecord.arrival_airport == arrival_airport,
                    FlightRecord.captured_at >= start,
                    FlightRecord.flight_time_minutes.is_not(None),
                )
            ).scalar_one_or_none()
        return int(average) if average is not None else None

    def flight_count_for_route(
        self,
        departure_airport: str,
        arrival_airport: str,
        days_back: int = 7,
        now: Optional[int] = None,
    ) -> int:
        """Number of snapshots captured for a route in the last days_back days."""
        start = (now if now is not None else now_ms()) - days_back * MS_PER_DAY
        with self.database.session() as session:
            return session.execute(
                select(func.count(FlightRecord.id)).where(
                    FlightRecord.departure_airport == departure_airport,
                    FlightRecord.arrival_airport == arrival_airport,
                    FlightRecord.captured_at >= start,
                )
            ).scalar_one()

    @property
    def stats(self) -> dict:
        """Get write statistics."""
        return {
            'stored': self._stored_count,
            'rejected': self._rejected_count,
            'failures': self._failure_count,
        }

