from __future__ import annotations

import pytest
import requests

from flighttracker.errors import ApiError, ErrorKind, NetworkError
from flighttracker.ingestion.aviationstack_client import FlightApiClient

from conftest import make_flight


class _Resp:
    def __init__(self, status_code=200, body=None, reason='OK', json_error=None):
        self.status_code = status_code
        self.reason = reason
        self._body = body
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise self._json_error
        return self._body


def _client_with(monkeypatch, response=None, exc=None):
    client = FlightApiClient(api_key='secret', base_url='http://api.example.test/v1', timeout=3)
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured['url'] = url
        captured['params'] = params
        captured['timeout'] = timeout
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(client.session, 'get', fake_get)
    return client, captured


def test_fetch_by_number_sends_filters(monkeypatch):
    client, captured = _client_with(monkeypatch, _Resp(body={'pagination': {}, 'data': [make_flight()]}))

    result = client.fetch_by_number(' aa100 ')

    assert captured['url'] == 'http://api.example.test/v1/flights'
    assert captured['params'] == {'access_key': 'secret', 'flight_iata': 'AA100'}
    assert captured['timeout'] == 3
    assert result.is_found
    assert result.flight.flight_iata == 'AA100'
    assert result.flight.departure.iata == 'JFK'


def test_fetch_by_route_sends_filters(monkeypatch):
    client, captured = _client_with(monkeypatch, _Resp(body={'data': [make_flight(), make_flight(flight_iata='XX9')]}))

    result = client.fetch_by_route('jfk', 'lax')

    assert captured['params'] == {'access_key': 'secret', 'dep_iata': 'JFK', 'arr_iata': 'LAX'}
    # Only data[0] is used
    assert result.flight.flight_iata == 'AA100'


def test_empty_data_is_not_found(monkeypatch):
    client, _ = _client_with(monkeypatch, _Resp(body={'pagination': {}, 'data': []}))

    result = client.fetch_by_number('ZZ999')

    assert result.is_not_found
    assert not result.is_error
    assert result.flight is None


def test_non_2xx_is_api_error(monkeypatch):
    client, _ = _client_with(monkeypatch, _Resp(status_code=503, reason='Service Unavailable'))

    result = client.fetch_by_number('AA100')

    assert result.is_error
    assert result.error_kind == ErrorKind.API
    assert result.detail == 'Service Unavailable'
    with pytest.raises(ApiError):
        result.raise_for_error()


def test_error_body_is_api_error(monkeypatch):
    body = {'error': {'code': 'invalid_access_key', 'message': 'You have not supplied a valid API Access Key.'}}
    client, _ = _client_with(monkeypatch, _Resp(body=body))

    result = client.fetch_by_number('AA100')

    assert result.error_kind == ErrorKind.API
    assert 'API Access Key' in result.detail


def test_malformed_json_is_api_error(monkeypatch):
    client, _ = _client_with(monkeypatch, _Resp(json_error=ValueError('Expecting value')))

    assert client.fetch_by_number('AA100').error_kind == ErrorKind.API


@pytest.mark.parametrize('exc', [
    requests.exceptions.ConnectionError('no route to host'),
    requests.exceptions.Timeout('timed out'),
])
def test_transport_failure_is_network_error(monkeypatch, exc):
    client, _ = _client_with(monkeypatch, exc=exc)

    result = client.fetch_by_route('JFK', 'LAX')

    assert result.error_kind == ErrorKind.NETWORK
    with pytest.raises(NetworkError):
        result.raise_for_error()


def test_other_exception_is_unknown(monkeypatch):
    client, _ = _client_with(monkeypatch, exc=RuntimeError('boom'))

    assert client.fetch_by_number('AA100').error_kind == ErrorKind.UNKNOWN


def test_payload_parses_live_block(monkeypatch):
    flight = make_flight(dep_delay=12)
    flight['live'] = {
        'updated': '2024-05-01T10:00:00+00:00',
        'latitude': 40.1,
        'longitude': -90.5,
        'altitude': 10500,
        'direction': 270,
        'speed_horizontal': 850.2,
        'speed_vertical': 0,
        'is_ground': False,
    }
    client, _ = _client_with(monkeypatch, _Resp(body={'data': [flight]}))

    payload = client.fetch_by_number('AA100').raise_for_error()

    assert payload.departure.delay == 12
    assert payload.live.altitude == 10500.0
    assert payload.live.is_ground is False
    assert payload.to_dict()['live']['direction'] == 270.0
