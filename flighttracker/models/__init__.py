"""
Database models for FlightTracker.

Two data tables and one bookkeeping table:
1. flight_records - raw observed flight snapshots
2. route_statistics - per-route aggregates derived from snapshots
3. collection_state - key/value state for the background collector
"""

from flighttracker.models.base import Base, Database
from flighttracker.models.flight_record import (
    FlightRecord,
    MS_PER_MINUTE,
    get_retention_cutoff_ms,
    now_ms,
)
from flighttracker.models.route_statistic import RouteStatistic, format_average_time
from flighttracker.models.collection_state import CollectionState, CollectionStateStore

__all__ = [
    'Base',
    'Database',
    'FlightRecord',
    'RouteStatistic',
    'CollectionState',
    'CollectionStateStore',
    'MS_PER_MINUTE',
    'get_retention_cutoff_ms',
    'now_ms',
    'format_average_time',
]
