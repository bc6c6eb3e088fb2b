"""
Analytics module for FlightTracker.

Provides route-level analysis of stored flight snapshots using NumPy:
- Duration distribution statistics
- Delay and punctuality figures
- Recent-window averages
"""

from flighttracker.analytics.route_analysis import (
    RouteAnalyzer,
    RouteAnalytics,
    DurationStats,
)

__all__ = [
    'RouteAnalyzer',
    'RouteAnalytics',
    'DurationStats',
]
