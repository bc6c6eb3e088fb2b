import pytest

from flighttracker.ingestion.repository import StoreMode
from flighttracker.jobs import FlightDataCollectionJob, JobResult, RunKind
from flighttracker.models import now_ms

from conftest import found, make_payload, network_error

HOUR = 3600 * 1000


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return Clock(now_ms())


@pytest.fixture
def job(fake_client, repository, state_store, clock):
    return FlightDataCollectionJob(
        client=fake_client,
        repository=repository,
        state_store=state_store,
        max_collections=10,
        min_interval_ms=2 * HOUR,
        retention_days=30,
        clock=clock,
    )


@pytest.fixture
def tracked(repository):
    """A previously tracked JFK->LAX flight to anchor the route."""
    repository.record_flight(make_payload(flight_iata='AA100'), StoreMode.INITIAL_TRACKING)


def test_no_prior_snapshot_fails_without_fetch(job, fake_client):
    assert job.run(RunKind.ONE_SHOT) == JobResult.FAILURE
    assert fake_client.calls == []


def test_success_stores_new_snapshot(job, fake_client, repository, state_store, clock, tracked):
    fake_client.queue(found(flight_iata='DL200'))

    assert job.run(RunKind.ONE_SHOT) == JobResult.SUCCESS

    assert fake_client.calls == [('route', 'JFK', 'LAX')]
    assert len(repository.list_records()) == 2
    assert state_store.collection_count == 1
    assert state_store.last_collection_time == clock.now
    assert repository.get_route_statistic('JFK', 'LAX').flight_count == 2


def test_same_flight_number_from_route_is_new_row(job, fake_client, repository, tracked):
    fake_client.queue(found(flight_iata='AA100'))

    job.run(RunKind.ONE_SHOT)

    assert len(repository.list_records()) == 2


def test_not_found_fails(job, fake_client, state_store, tracked):
    fake_client.queue()  # default is not found

    assert job.run(RunKind.ONE_SHOT) == JobResult.FAILURE
    assert state_store.collection_count == 0


def test_transport_error_asks_for_retry(job, fake_client, state_store, tracked):
    fake_client.queue(network_error())

    assert job.run(RunKind.ONE_SHOT) == JobResult.RETRY
    assert state_store.collection_count == 0


def test_rejected_payload_fails(job, fake_client, tracked):
    fake_client.queue(found(arr_iata=None))

    assert job.run(RunKind.ONE_SHOT) == JobResult.FAILURE


def test_cap_stops_network_calls(job, fake_client, tracked, clock):
    fake_client.default = found(flight_iata='DL200')

    for _ in range(10):
        assert job.run(RunKind.PERIODIC) == JobResult.SUCCESS
        clock.advance(3 * HOUR)
    assert len(fake_client.calls) == 10

    assert job.run(RunKind.PERIODIC) == JobResult.SUCCESS
    assert job.run(RunKind.ONE_SHOT) == JobResult.SUCCESS
    assert len(fake_client.calls) == 10


def test_throttle_applies_to_periodic_only(job, fake_client, tracked, clock):
    fake_client.default = found(flight_iata='DL200')

    assert job.run(RunKind.PERIODIC) == JobResult.SUCCESS
    clock.advance(HOUR)

    assert job.run(RunKind.PERIODIC) == JobResult.SUCCESS
    assert len(fake_client.calls) == 1

    assert job.run(RunKind.ONE_SHOT) == JobResult.SUCCESS
    assert len(fake_client.calls) == 2

    clock.advance(2 * HOUR)
    job.run(RunKind.PERIODIC)
    assert len(fake_client.calls) == 3


def test_zero_interval_disables_throttle(fake_client, repository, state_store, clock, tracked):
    job = FlightDataCollectionJob(fake_client, repository, state_store, min_interval_ms=0, clock=clock)
    fake_client.default = found(flight_iata='DL200')

    job.run(RunKind.PERIODIC)
    job.run(RunKind.PERIODIC)

    assert len(fake_client.calls) == 2


def test_success_purges_old_records(job, fake_client, repository, clock):
    repository.record_flight(make_payload(flight_iata='OLD1'), captured_at=clock.now - 45 * 24 * HOUR)
    repository.record_flight(make_payload(flight_iata='AA100'), captured_at=clock.now - HOUR)
    fake_client.queue(found(flight_iata='DL200'))

    assert job.run(RunKind.ONE_SHOT) == JobResult.SUCCESS

    numbers = {r.flight_number for r in repository.list_records()}
    assert numbers == {'AA100', 'DL200'}


def test_unexpected_exception_is_failure(job, repository, monkeypatch, tracked):
    def broken():
        raise RuntimeError('db gone')

    monkeypatch.setattr(repository, 'latest_record', broken)

    assert job.run(RunKind.ONE_SHOT) == JobResult.FAILURE
    assert job.stats['last_result'] == 'failure'
