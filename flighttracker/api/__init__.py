"""
API module for FlightTracker.

Provides REST endpoints for:
- Live flight tracking
- Route statistics and analytics
- Background collection control
"""

from flighttracker.api.tracking import tracking_bp
from flighttracker.api.statistics import statistics_bp

__all__ = ['tracking_bp', 'statistics_bp']
