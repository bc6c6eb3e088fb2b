"""
FlightTracker Backend Package.

Flight status tracking and route statistics built with Flask, SQLAlchemy,
and NumPy.

Modules:
    api/         REST endpoints for tracking and route statistics
    models/      SQLAlchemy ORM models (FlightRecord, RouteStatistic, CollectionState)
    ingestion/   AviationStack client, payload normalization, flight repository
    analytics/   NumPy-based route duration and delay analysis
    jobs/        Background collection job and its scheduler
    services/    Tracking session and statistics view controllers
    errors.py    Error taxonomy shared by all layers
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
