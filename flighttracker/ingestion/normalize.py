"""
Payload normalization - turns an API flight payload into a storable snapshot.

Stages:
1. Validate: flight number and both airport IATA codes must be present
2. Parse: local date-times ('yyyy-MM-ddTHH:mm:ss') into epoch ms
3. Derive: flight duration from actual times, else delay-adjusted schedule
4. Default: airline, city names, flight date
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from flighttracker.ingestion.aviationstack_client import FlightPayload
from flighttracker.models.flight_record import MS_PER_MINUTE, now_ms

logger = logging.getLogger(__name__)

DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%S'
DATETIME_LENGTH = 19  # len('2024-05-01T10:30:00')

UNKNOWN_AIRLINE = 'Unknown Airline'
UNKNOWN_CITY = 'Unknown City'


def parse_datetime_ms(value: Optional[str]) -> Optional[int]:
    """
    Parse an API timestamp into epoch milliseconds.

    Only the leading 'yyyy-MM-ddTHH:mm:ss' part is read; any offset or
    fraction that follows is ignored and the wall-clock value is taken
    as UTC. Returns None for absent or unparsable input.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.strptime(value[:DATETIME_LENGTH], DATETIME_FORMAT)
    except ValueError:
        return None
    return int(parsed.replace(tzinfo=timezone.utc).timestamp() * 1000)


def compute_flight_time_minutes(
    scheduled_departure: Optional[int],
    scheduled_arrival: Optional[int],
    actual_departure: Optional[int] = None,
    actual_arrival: Optional[int] = None,
    departure_delay_minutes: Optional[int] = None,
    arrival_delay_minutes: Optional[int] = None,
) -> Optional[int]:
    """
    Flight duration in whole minutes.

    Actual times win when both are known. Otherwise the scheduled times
    are shifted by their delays (missing delay counts as 0). Integer
    floor division throughout.
    """
    if actual_departure is not None and actual_arrival is not None:
        return (actual_arrival - actual_departure) // MS_PER_MINUTE

    if scheduled_departure is not None and scheduled_arrival is not None:
        departure_delay_ms = (departure_delay_minutes or 0) * MS_PER_MINUTE
        arrival_delay_ms = (arrival_delay_minutes or 0) * MS_PER_MINUTE
        return (
            (scheduled_arrival + arrival_delay_ms) - (scheduled_departure + departure_delay_ms)
        ) // MS_PER_MINUTE

    return None


@dataclass
class FlightSnapshot:
    """A normalized, not-yet-persisted flight observation."""
    flight_number: str
    airline: str
    departure_airport: str
    departure_city: str
    arrival_airport: str
    arrival_city: str
    scheduled_departure_time: int
    scheduled_arrival_time: int
    flight_date: str
    actual_departure_time: Optional[int] = None
    actual_arrival_time: Optional[int] = None
    departure_delay_minutes: Optional[int] = None
    arrival_delay_minutes: Optional[int] = None
    flight_time_minutes: Optional[int] = None
    flight_status: Optional[str] = None
    captured_at: int = field(default_factory=now_ms)

    @property
    def route(self) -> tuple:
        return (self.departure_airport, self.arrival_airport)

    def to_row(self) -> dict:
        """Column values for a flight_records insert."""
        return dict(vars(self))


@dataclass
class NormalizeResult:
    """Either a snapshot or the reason the payload was rejected."""
    snapshot: Optional[FlightSnapshot] = None
    rejected_reason: Optional[str] = None

    @property
    def is_rejected(self) -> bool:
        return self.snapshot is None


def _clean_code(value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    value = value.strip().upper()
    return value or None


def normalize(payload: FlightPayload, captured_at: Optional[int] = None) -> NormalizeResult:
    """
    Convert an API payload into a FlightSnapshot.

    Rejected when the flight number or either airport IATA code is missing.
    """
    flight_number = _clean_code(payload.flight_iata)
    if flight_number is None:
        return NormalizeResult(rejected_reason='missing flight number')

    departure_airport = _clean_code(payload.departure.iata)
    if departure_airport is None:
        return NormalizeResult(rejected_reason='missing departure airport')

    arrival_airport = _clean_code(payload.arrival.iata)
    if arrival_airport is None:
        return NormalizeResult(rejected_reason='missing arrival airport')

    scheduled_departure = parse_datetime_ms(payload.departure.scheduled)
    scheduled_arrival = parse_datetime_ms(payload.arrival.scheduled)
    actual_departure = parse_datetime_ms(payload.departure.actual)
    actual_arrival = parse_datetime_ms(payload.arrival.actual)

    capture_time = captured_at if captured_at is not None else now_ms()

    flight_date = payload.flight_date
    if not flight_date:
        flight_date = datetime.fromtimestamp(capture_time / 1000, tz=timezone.utc).strftime('%Y-%m-%d')

    snapshot = FlightSnapshot(
        flight_number=flight_number,
        airline=payload.airline_name or UNKNOWN_AIRLINE,
        departure_airport=departure_airport,
        departure_city=payload.departure.airport or UNKNOWN_CITY,
        arrival_airport=arrival_airport,
        arrival_city=payload.arrival.airport or UNKNOWN_CITY,
        scheduled_departure_time=scheduled_departure or 0,
        scheduled_arrival_time=scheduled_arrival or 0,
        actual_departure_time=actual_departure,
        actual_arrival_time=actual_arrival,
        departure_delay_minutes=payload.departure.delay,
        arrival_delay_minutes=payload.arrival.delay,
        flight_time_minutes=compute_flight_time_minutes(
            scheduled_departure,
            scheduled_arrival,
            actual_departure,
            actual_arrival,
            payload.departure.delay,
            payload.arrival.delay,
        ),
        flight_date=flight_date,
        flight_status=payload.flight_status,
        captured_at=capture_time,
    )
    return NormalizeResult(snapshot=snapshot)
