"""
Statistics view controller - route aggregates and the collection toggle.

Exposes the precomputed route_statistics table in display form and
switches background collection on and off through the scheduler.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import List, Optional

from flighttracker.analytics import RouteAnalyzer
from flighttracker.ingestion.repository import FlightRepository
from flighttracker.jobs.scheduler import CollectionScheduler
from flighttracker.models import FlightRecord, format_average_time

logger = logging.getLogger(__name__)


@dataclass
class RouteStatisticView:
    """Display model for one route."""
    departure_airport: str
    departure_name: str
    arrival_airport: str
    arrival_name: str
    average_time: str
    average_time_minutes: int
    flight_count: int

    def to_dict(self) -> dict:
        return asdict(self)


class StatisticsController:
    """
    Publishes route statistics and controls background collection.

    Collection starts with an immediate one-shot run followed by the
    periodic schedule after initial_delay_seconds.
    """

    def __init__(
        self,
        repository: FlightRepository,
        scheduler: CollectionScheduler,
        analyzer: Optional[RouteAnalyzer] = None,
        initial_delay_seconds: float = 15 * 60,
    ):
        self.repository = repository
        self.scheduler = scheduler
        self.analyzer = analyzer or RouteAnalyzer(repository)
        self.initial_delay_seconds = initial_delay_seconds

        self._lock = threading.Lock()
        self._collection_active = scheduler.is_scheduled()

    @property
    def data_collection_active(self) -> bool:
        with self._lock:
            return self._collection_active

    def route_statistics(self) -> List[RouteStatisticView]:
        """Route aggregates, busiest first."""
        views = [
            RouteStatisticView(
                departure_airport=s.departure_airport,
                departure_name=s.departure_city,
                arrival_airport=s.arrival_airport,
                arrival_name=s.arrival_city,
                average_time=format_average_time(s.average_flight_time_minutes),
                average_time_minutes=s.average_flight_time_minutes,
                flight_count=s.flight_count,
            )
            for s in self.repository.list_route_statistics()
        ]
        views.sort(key=lambda v: v.flight_count, reverse=True)
        return views

    def flight_records(self, limit: Optional[int] = None) -> List[FlightRecord]:
        return self.repository.list_records(limit=limit)

    def route_analytics(self, departure_airport: str, arrival_airport: str) -> Optional[dict]:
        analytics = self.analyzer.analyze_route(departure_airport, arrival_airport)
        return analytics.to_dict() if analytics else None

    def start_collection(self) -> bool:
        """
        Turn background collection on.

        Returns False (and leaves the toggle off) when no flight has ever
        been tracked, since there is no route to sample.
        """
        with self._lock:
            self._collection_active = True

        try:
            self.scheduler.cancel_all()

            latest = self.repository.latest_record()
            if latest is None:
                logger.info('No tracked flights yet, collection not started')
                with self._lock:
                    self._collection_active = False
                return False

            self.scheduler.reset_collection()
            self.scheduler.collect_now()
            self.scheduler.schedule_periodic(self.initial_delay_seconds)

            logger.info(
                f'Collection started for route {latest.departure_airport} -> {latest.arrival_airport} '
                f'(last tracked {latest.flight_number})'
            )
            return True

        except Exception as e:
            logger.error(f'Error starting flight data collection: {e}')
            with self._lock:
                self._collection_active = False
            return False

    def stop_collection(self) -> None:
        """Turn background collection off."""
        with self._lock:
            self._collection_active = False
        self.scheduler.cancel_all()

    def collect_now(self) -> None:
        """Trigger a single collection run without touching the toggle."""
        self.scheduler.collect_now()

    def to_dict(self) -> dict:
        return {
            'collection_active': self.data_collection_active,
            'routes': [v.to_dict() for v in self.route_statistics()],
            'summary': self.analyzer.summarize(),
        }
