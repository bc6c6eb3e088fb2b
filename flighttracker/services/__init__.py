"""
Session-level services.

Controllers that hold published state for the presentation layer:
live flight tracking and route statistics with the collection toggle.
"""

from flighttracker.services.tracking import FlightTrackingSession, TrackingState, TrackingStatus
from flighttracker.services.statistics import RouteStatisticView, StatisticsController

__all__ = [
    'FlightTrackingSession',
    'TrackingState',
    'TrackingStatus',
    'RouteStatisticView',
    'StatisticsController',
]
