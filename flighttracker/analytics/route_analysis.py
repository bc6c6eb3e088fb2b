"""
Route duration and delay analysis using NumPy.

Complements the precomputed route_statistics table with distribution
figures computed on demand from the stored snapshots:

1. Duration spread: mean, standard deviation, min, max
2. Delays: mean departure and arrival delay
3. Punctuality: share of snapshots arriving within the on-time threshold
4. Recent window: mean duration and sample count over the last N days
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List

import numpy as np

from flighttracker.ingestion.repository import FlightRepository
from flighttracker.models import FlightRecord, RouteStatistic, format_average_time, now_ms

logger = logging.getLogger(__name__)


@dataclass
class DurationStats:
    """Distribution of flight durations for a route, in minutes."""
    mean: float
    std: float
    min_val: int
    max_val: int
    count: int


@dataclass
class RouteAnalytics:
    """Complete analytics for a single route."""
    departure_airport: str
    arrival_airport: str
    departure_city: Optional[str]
    arrival_city: Optional[str]

    total_samples: int
    distinct_flights: int

    duration: Optional[DurationStats] = None
    mean_departure_delay: Optional[float] = None
    mean_arrival_delay: Optional[float] = None
    on_time_ratio: Optional[float] = None

    recent_average_minutes: Optional[int] = None
    recent_sample_count: int = 0

    flight_numbers: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        duration = None
        if self.duration:
            duration = {
                'mean': round(self.duration.mean, 1),
                'mean_display': format_average_time(int(self.duration.mean)),
                'std': round(self.duration.std, 1),
                'min': self.duration.min_val,
                'max': self.duration.max_val,
                'count': self.duration.count,
            }
        return {
            'route': {
                'departure_airport': self.departure_airport,
                'departure_city': self.departure_city,
                'arrival_airport': self.arrival_airport,
                'arrival_city': self.arrival_city,
            },
            'samples': self.total_samples,
            'distinct_flights': self.distinct_flights,
            'flight_numbers': self.flight_numbers,
            'duration': duration,
            'delays': {
                'mean_departure_minutes': _round(self.mean_departure_delay),
                'mean_arrival_minutes': _round(self.mean_arrival_delay),
                'on_time_ratio': _round(self.on_time_ratio, 3),
            },
            'recent': {
                'average_minutes': self.recent_average_minutes,
                'samples': self.recent_sample_count,
            },
        }


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    return round(value, digits) if value is not None else None


class RouteAnalyzer:
    """
    Computes per-route analytics from stored flight records.

    Configuration:
    - on_time_threshold_minutes: arrival delay at or under this counts as on time
    - recent_days: look-back window for the recent average
    """

    def __init__(
        self,
        repository: FlightRepository,
        on_time_threshold_minutes: int = 15,
        recent_days: int = 7,
    ):
        self.repository = repository
        self.on_time_threshold_minutes = on_time_threshold_minutes
        self.recent_days = recent_days

    def analyze_route(
        self,
        departure_airport: str,
        arrival_airport: str,
        now: Optional[int] = None,
    ) -> Optional[RouteAnalytics]:
        """Analytics for one route, or None when nothing is stored for it."""
        departure_airport = departure_airport.strip().upper()
        arrival_airport = arrival_airport.strip().upper()

        records = self.repository.records_for_route(departure_airport, arrival_airport)
        if not records:
            logger.debug(f'No records for route {departure_airport}->{arrival_airport}')
            return None

        latest = records[-1]
        flight_numbers = sorted({r.flight_number for r in records})

        analytics = RouteAnalytics(
            departure_airport=departure_airport,
            arrival_airport=arrival_airport,
            departure_city=latest.departure_city,
            arrival_city=latest.arrival_city,
            total_samples=len(records),
            distinct_flights=len(flight_numbers),
            flight_numbers=flight_numbers,
        )

        analytics.duration = self._duration_stats(records)
        analytics.mean_departure_delay = self._mean_of([r.departure_delay_minutes for r in records])
        analytics.mean_arrival_delay = self._mean_of([r.arrival_delay_minutes for r in records])
        analytics.on_time_ratio = self._on_time_ratio(records)

        reference = now if now is not None else now_ms()
        analytics.recent_average_minutes = self.repository.average_flight_time_for_route(
            departure_airport, arrival_airport, days_back=self.recent_days, now=reference,
        )
        analytics.recent_sample_count = self.repository.flight_count_for_route(
            departure_airport, arrival_airport, days_back=self.recent_days, now=reference,
        )

        return analytics

    def _duration_stats(self, records: List[FlightRecord]) -> Optional[DurationStats]:
        durations = np.array(
            [r.flight_time_minutes for r in records if r.flight_time_minutes is not None],
            dtype=np.float64,
        )
        if durations.size == 0:
            return None

        return DurationStats(
            mean=float(np.mean(durations)),
            std=float(np.std(durations)),
            min_val=int(np.min(durations)),
            max_val=int(np.max(durations)),
            count=int(durations.size),
        )

    def _mean_of(self, values: List[Optional[int]]) -> Optional[float]:
        present = np.array([v for v in values if v is not None], dtype=np.float64)
        if present.size == 0:
            return None
        return float(np.mean(present))

    def _on_time_ratio(self, records: List[FlightRecord]) -> Optional[float]:
        delays = np.array(
            [r.arrival_delay_minutes or 0 for r in records if r.scheduled_arrival_time],
            dtype=np.float64,
        )
        if delays.size == 0:
            return None
        return float(np.mean(delays <= self.on_time_threshold_minutes))

    def summarize(self, statistics: Optional[List[RouteStatistic]] = None) -> dict:
        """
        Fleet-wide summary over all route aggregates.

        Returns route count, total distinct flights, and the
        count-weighted mean of route averages.
        """
        if statistics is None:
            statistics = self.repository.list_route_statistics()

        if not statistics:
            return {'routes': 0, 'flights': 0, 'weighted_average_minutes': None}

        averages = np.array([s.average_flight_time_minutes for s in statistics], dtype=np.float64)
        counts = np.array([s.flight_count for s in statistics], dtype=np.float64)

        weighted = None
        if counts.sum() > 0:
            weighted = int(np.average(averages, weights=counts))

        return {
            'routes': len(statistics),
            'flights': int(counts.sum()),
            'weighted_average_minutes': weighted,
        }
