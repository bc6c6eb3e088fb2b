"""
AviationStack flight status API client.

Handles communication with the AviationStack REST API:
- GET /flights?access_key=...&flight_iata=...   (lookup by flight number)
- GET /flights?access_key=...&dep_iata=...&arr_iata=...   (lookup by route)

Only data[0] of the response is consulted. The client never raises past
its boundary and performs no retries: every call returns a FetchResult
and retry policy belongs to the caller.

Response shape (fields consumed):
    {
      "pagination": {...},
      "data": [{
        "flight_date": "2024-05-01",
        "flight_status": "active",
        "departure": {"airport", "iata", "scheduled", "actual", "delay"},
        "arrival":   {"airport", "iata", "scheduled", "actual", "delay"},
        "airline": {"name"},
        "flight": {"iata"},
        "live": {"updated", "latitude", "longitude", "altitude",
                 "direction", "speed_horizontal", "speed_vertical", "is_ground"}
      }]
    }
"""

import logging
from dataclasses import dataclass
from typing import Optional, Any, Dict

import requests

from flighttracker.errors import ErrorKind, error_for_kind

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class AirportTiming:
    """Departure or arrival block of a flight payload."""
    airport: Optional[str] = None
    iata: Optional[str] = None
    scheduled: Optional[str] = None
    actual: Optional[str] = None
    delay: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AirportTiming':
        data = data or {}
        return cls(
            airport=data.get('airport'),
            iata=data.get('iata'),
            scheduled=data.get('scheduled'),
            actual=data.get('actual'),
            delay=_as_int(data.get('delay')),
        )


@dataclass
class LivePosition:
    """Live telemetry block, present only while airborne."""
    updated: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    direction: Optional[float] = None
    speed_horizontal: Optional[float] = None
    speed_vertical: Optional[float] = None
    is_ground: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['LivePosition']:
        if not data:
            return None
        is_ground = data.get('is_ground')
        return cls(
            updated=data.get('updated'),
            latitude=_as_float(data.get('latitude')),
            longitude=_as_float(data.get('longitude')),
            altitude=_as_float(data.get('altitude')),
            direction=_as_float(data.get('direction')),
            speed_horizontal=_as_float(data.get('speed_horizontal')),
            speed_vertical=_as_float(data.get('speed_vertical')),
            is_ground=bool(is_ground) if is_ground is not None else None,
        )


@dataclass
class FlightPayload:
    """
    Parsed flight entry from the API.

    All fields may be None; normalization decides what is usable.
    """
    flight_date: Optional[str]
    flight_status: Optional[str]
    departure: AirportTiming
    arrival: AirportTiming
    airline_name: Optional[str]
    flight_iata: Optional[str]
    live: Optional[LivePosition] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FlightPayload':
        return cls(
            flight_date=data.get('flight_date'),
            flight_status=data.get('flight_status'),
            departure=AirportTiming.from_dict(data.get('departure')),
            arrival=AirportTiming.from_dict(data.get('arrival')),
            airline_name=(data.get('airline') or {}).get('name'),
            flight_iata=(data.get('flight') or {}).get('iata'),
            live=LivePosition.from_dict(data.get('live')),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        live = None
        if self.live:
            live = {
                'updated': self.live.updated,
                'latitude': self.live.latitude,
                'longitude': self.live.longitude,
                'altitude': self.live.altitude,
                'direction': self.live.direction,
                'speed_horizontal': self.live.speed_horizontal,
                'speed_vertical': self.live.speed_vertical,
                'is_ground': self.live.is_ground,
            }
        return {
            'flight_number': self.flight_iata,
            'airline': self.airline_name,
            'flight_date': self.flight_date,
            'flight_status': self.flight_status,
            'departure': vars(self.departure).copy(),
            'arrival': vars(self.arrival).copy(),
            'live': live,
        }


@dataclass
class FetchResult:
    """Outcome of one API lookup: found, not found, or a typed error."""
    flight: Optional[FlightPayload] = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @classmethod
    def found(cls, flight: FlightPayload) -> 'FetchResult':
        return cls(flight=flight)

    @classmethod
    def not_found(cls) -> 'FetchResult':
        return cls(error_kind=ErrorKind.NOT_FOUND)

    @classmethod
    def error(cls, kind: ErrorKind, detail: Optional[str] = None) -> 'FetchResult':
        return cls(error_kind=kind, detail=detail)

    @property
    def is_found(self) -> bool:
        return self.flight is not None

    @property
    def is_not_found(self) -> bool:
        return self.error_kind == ErrorKind.NOT_FOUND

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None and self.error_kind != ErrorKind.NOT_FOUND

    def raise_for_error(self) -> Optional[FlightPayload]:
        """Return the flight, or raise the exception matching the failure."""
        if self.error_kind is not None:
            raise error_for_kind(self.error_kind, self.detail or self.error_kind.value, self.detail)
        return self.flight


class FlightApiClient:
    """
    Client for the AviationStack /flights endpoint.

    Maps transport failures to ErrorKind.NETWORK, non-2xx responses and
    API error bodies to ErrorKind.API, anything else to ErrorKind.UNKNOWN.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = 'http://api.aviationstack.com/v1',
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self._request_count = 0

        if not self.api_key:
            logger.warning('AviationStack API key not configured - lookups will fail')

    @classmethod
    def from_config(cls, app_config=None) -> 'FlightApiClient':
        """Create client from application configuration."""
        if app_config is None:
            from flighttracker.config import config as app_config
        return cls(
            api_key=app_config.aviationstack.api_key,
            base_url=app_config.aviationstack.base_url,
            timeout=app_config.aviationstack.timeout,
        )

    def fetch_by_number(self, flight_number: str) -> FetchResult:
        """Look up a flight by IATA flight number."""
        return self._fetch({'flight_iata': flight_number.strip().upper()})

    def fetch_by_route(self, departure_iata: str, arrival_iata: str) -> FetchResult:
        """Look up a flight on a departure/arrival airport pair."""
        return self._fetch({
            'dep_iata': departure_iata.strip().upper(),
            'arr_iata': arrival_iata.strip().upper(),
        })

    def _fetch(self, filters: Dict[str, str]) -> FetchResult:
        params = {'access_key': self.api_key or ''}
        params.update(filters)
        url = f'{self.base_url}/flights'

        logger.debug(f'Fetching flights: {url} filters={filters}')

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            self._request_count += 1

            if not 200 <= response.status_code < 300:
                detail = response.reason or f'HTTP {response.status_code}'
                logger.warning(f'AviationStack API error: {response.status_code} {detail}')
                return FetchResult.error(ErrorKind.API, detail)

            data = response.json()

        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f'AviationStack request failed: {e}')
            return FetchResult.error(ErrorKind.NETWORK, str(e))
        except ValueError as e:
            logger.error(f'AviationStack returned malformed JSON: {e}')
            return FetchResult.error(ErrorKind.API, 'Malformed response')
        except Exception as e:
            logger.error(f'Unexpected error calling AviationStack: {e}')
            return FetchResult.error(ErrorKind.UNKNOWN, str(e))

        if not isinstance(data, dict):
            return FetchResult.error(ErrorKind.API, 'Malformed response')

        if 'error' in data:
            error = data['error'] or {}
            detail = error.get('message') if isinstance(error, dict) else str(error)
            logger.warning(f'AviationStack API error: {detail}')
            return FetchResult.error(ErrorKind.API, detail)

        flights = data.get('data') or []
        if not flights:
            logger.debug(f'No flight data found for {filters}')
            return FetchResult.not_found()

        try:
            flight = FlightPayload.from_dict(flights[0])
        except Exception as e:
            logger.error(f'Error parsing flight payload: {e}')
            return FetchResult.error(ErrorKind.UNKNOWN, str(e))

        return FetchResult.found(flight)

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        return {
            'requests': self._request_count,
            'api_configured': bool(self.api_key),
        }
