from __future__ import annotations

from typing import List, Optional

import pytest

from flighttracker.errors import ErrorKind
from flighttracker.ingestion.aviationstack_client import FetchResult, FlightPayload
from flighttracker.ingestion.repository import FlightRepository
from flighttracker.models import CollectionStateStore, Database


def make_flight(
    flight_iata: Optional[str] = 'AA100',
    dep_iata: Optional[str] = 'JFK',
    arr_iata: Optional[str] = 'LAX',
    scheduled_dep: Optional[str] = '2024-05-01T08:00:00+00:00',
    scheduled_arr: Optional[str] = '2024-05-01T14:00:00+00:00',
    actual_dep: Optional[str] = None,
    actual_arr: Optional[str] = None,
    dep_delay: Optional[int] = None,
    arr_delay: Optional[int] = None,
    flight_date: Optional[str] = '2024-05-01',
    airline: Optional[str] = 'American Airlines',
) -> dict:
    """Raw /flights data[] entry in the API's JSON shape."""
    return {
        'flight_date': flight_date,
        'flight_status': 'active',
        'departure': {
            'airport': 'John F Kennedy International',
            'iata': dep_iata,
            'scheduled': scheduled_dep,
            'actual': actual_dep,
            'delay': dep_delay,
        },
        'arrival': {
            'airport': 'Los Angeles International',
            'iata': arr_iata,
            'scheduled': scheduled_arr,
            'actual': actual_arr,
            'delay': arr_delay,
        },
        'airline': {'name': airline},
        'flight': {'iata': flight_iata},
        'live': None,
    }


def make_payload(**kwargs) -> FlightPayload:
    return FlightPayload.from_dict(make_flight(**kwargs))


class FakeFlightClient:
    """Stands in for FlightApiClient; replays queued results."""

    def __init__(self, results: Optional[List[FetchResult]] = None, default: Optional[FetchResult] = None):
        self.results = list(results or [])
        self.default = default or FetchResult.not_found()
        self.calls = []

    def queue(self, *results: FetchResult) -> None:
        self.results.extend(results)

    def _next(self) -> FetchResult:
        if self.results:
            return self.results.pop(0)
        return self.default

    def fetch_by_number(self, flight_number: str) -> FetchResult:
        self.calls.append(('number', flight_number))
        return self._next()

    def fetch_by_route(self, departure_iata: str, arrival_iata: str) -> FetchResult:
        self.calls.append(('route', departure_iata, arrival_iata))
        return self._next()


def found(**kwargs) -> FetchResult:
    return FetchResult.found(make_payload(**kwargs))


def network_error() -> FetchResult:
    return FetchResult.error(ErrorKind.NETWORK, 'connection refused')


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.init_schema()
    yield db
    db.dispose()


@pytest.fixture
def state_store(database):
    return CollectionStateStore(database)


@pytest.fixture
def repository(database, state_store):
    return FlightRepository(database, state_store=state_store)


@pytest.fixture
def fake_client():
    return FakeFlightClient()
