import threading
import time

import pytest

from flighttracker.ingestion.aviationstack_client import FetchResult
from flighttracker.errors import ErrorKind
from flighttracker.services.tracking import (
    MESSAGE_INVALID_NUMBER,
    MESSAGE_NETWORK_ERROR,
    MESSAGE_NOT_FOUND,
    FlightTrackingSession,
    TrackingStatus,
)

from conftest import found, network_error


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def session(fake_client, repository):
    tracking = FlightTrackingSession(fake_client, repository, poll_interval=30)
    yield tracking
    tracking.close()


@pytest.mark.parametrize('number', ['', '   ', None])
def test_blank_number_is_rejected_without_fetch(session, fake_client, number):
    state = session.track_flight(number)

    assert state.status == TrackingStatus.ERROR
    assert state.message == MESSAGE_INVALID_NUMBER
    assert fake_client.calls == []


def test_found_flight_publishes_success_and_polls(session, fake_client, repository):
    fake_client.queue(found())

    state = session.track_flight(' aa100 ')

    assert state.status == TrackingStatus.SUCCESS
    assert state.flight.flight_iata == 'AA100'
    assert fake_client.calls == [('number', 'AA100')]
    assert session.flight_number == 'AA100'
    assert session.is_polling
    assert not session.is_tracking_stopped
    assert session.last_fetch_time is not None
    assert len(repository.list_records()) == 1


def test_not_found_stops_tracking(session, fake_client, repository):
    state = session.track_flight('ZZ999')

    assert state.status == TrackingStatus.ERROR
    assert state.message == MESSAGE_NOT_FOUND
    assert session.is_tracking_stopped
    assert not session.is_polling
    assert repository.list_records() == []


@pytest.mark.parametrize('kind', [ErrorKind.NETWORK, ErrorKind.API, ErrorKind.UNKNOWN])
def test_errors_share_network_message(session, fake_client, kind):
    fake_client.queue(FetchResult.error(kind, 'boom'))

    state = session.track_flight('AA100')

    assert state.message == MESSAGE_NETWORK_ERROR
    assert session.is_tracking_stopped


def test_listeners_see_loading_then_result(session, fake_client):
    seen = []
    session.add_listener(lambda s: seen.append(s.status))
    fake_client.queue(found())

    session.track_flight('AA100')

    assert seen == [TrackingStatus.LOADING, TrackingStatus.SUCCESS]


def test_broken_listener_does_not_break_tracking(session, fake_client):
    def broken(_state):
        raise RuntimeError('listener failed')

    session.add_listener(broken)
    fake_client.queue(found())

    assert session.track_flight('AA100').status == TrackingStatus.SUCCESS


def test_polling_updates_the_same_snapshot(fake_client, repository):
    fake_client.default = found(dep_delay=5)
    fake_client.queue(found())
    tracking = FlightTrackingSession(fake_client, repository, poll_interval=0.02)
    try:
        tracking.track_flight('AA100')
        assert wait_for(lambda: len(fake_client.calls) >= 3)
    finally:
        tracking.stop_tracking()

    records = repository.list_records()
    assert len(records) == 1
    assert records[0].departure_delay_minutes == 5


def test_poll_error_stops_session(fake_client, repository):
    fake_client.queue(found(), network_error())
    tracking = FlightTrackingSession(fake_client, repository, poll_interval=0.02)
    try:
        tracking.track_flight('AA100')
        assert wait_for(lambda: tracking.is_tracking_stopped)
    finally:
        tracking.close()

    assert tracking.state.message == MESSAGE_NETWORK_ERROR
    assert not tracking.is_polling


def test_stop_tracking_sets_flag(session, fake_client):
    fake_client.queue(found())
    session.track_flight('AA100')

    session.stop_tracking()

    assert session.is_tracking_stopped
    assert not session.is_polling
    assert session.flight_number is None


def test_new_track_clears_stopped_flag(session, fake_client):
    session.track_flight('ZZ999')
    assert session.is_tracking_stopped

    fake_client.queue(found())
    session.track_flight('AA100')

    assert not session.is_tracking_stopped


class BlockingClient:
    def __init__(self, result):
        self.result = result
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_by_number(self, flight_number):
        self.entered.set()
        self.release.wait(2)
        return self.result


def test_stale_result_is_discarded(repository):
    client = BlockingClient(found())
    tracking = FlightTrackingSession(client, repository, poll_interval=30)

    worker = threading.Thread(target=tracking.track_flight, args=('AA100',))
    worker.start()
    assert client.entered.wait(2)

    tracking.stop_tracking()
    client.release.set()
    worker.join(2)

    assert tracking.state.status == TrackingStatus.LOADING
    assert not tracking.is_polling
    assert repository.list_records() == []


def test_to_dict_shape(session, fake_client):
    fake_client.queue(found())
    session.track_flight('AA100')

    data = session.to_dict()

    assert data['status'] == 'success'
    assert data['flight_number'] == 'AA100'
    assert data['flight']['departure']['iata'] == 'JFK'
    assert data['polling'] is True


def test_non_string_number_is_rejected(session, fake_client):
    state = session.track_flight(123)

    assert state.message == MESSAGE_INVALID_NUMBER
    assert fake_client.calls == []


def test_stop_between_check_and_publish_discards_result(session, fake_client, repository, monkeypatch):
    fake_client.queue(found())
    session.track_flight('AA100')
    stale_generation = session._generation
    session.stop_tracking()
    stopped_state = session.state

    # Stopping lands after the currency check has already passed
    monkeypatch.setattr(session, '_is_current', lambda generation: True)
    fake_client.queue(found(dep_delay=30))
    session._fetch('AA100', stale_generation)

    assert session.state is stopped_state
    records = repository.list_records()
    assert len(records) == 1
    assert records[0].departure_delay_minutes is None


def test_stale_error_does_not_stop_new_session(session, fake_client, monkeypatch):
    fake_client.queue(found())
    session.track_flight('AA100')
    stale_generation = session._generation
    fake_client.queue(found())
    session.track_flight('DL200')

    monkeypatch.setattr(session, '_is_current', lambda generation: True)
    fake_client.queue(network_error())
    session._fetch('AA100', stale_generation)

    assert session.state.status == TrackingStatus.SUCCESS
    assert not session.is_tracking_stopped
    assert session.flight_number == 'DL200'
