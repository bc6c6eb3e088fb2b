"""
Data ingestion module for FlightTracker.

Handles calling the AviationStack API, normalizing flight payloads,
and loading them into the relational database.
"""

from flighttracker.ingestion.aviationstack_client import FetchResult, FlightApiClient, FlightPayload
from flighttracker.ingestion.normalize import FlightSnapshot, normalize
from flighttracker.ingestion.repository import FlightRepository, StoreMode, StoreOutcome

__all__ = [
    'FetchResult',
    'FlightApiClient',
    'FlightPayload',
    'FlightSnapshot',
    'normalize',
    'FlightRepository',
    'StoreMode',
    'StoreOutcome',
]
