import pytest

from flighttracker.analytics import RouteAnalyzer
from flighttracker.ingestion.repository import StoreMode
from flighttracker.jobs import (
    WORK_NAME_ONE_SHOT,
    CollectionScheduler,
    FlightDataCollectionJob,
    WorkState,
)
from flighttracker.models import format_average_time, now_ms
from flighttracker.services import StatisticsController

from conftest import found, make_payload

DAY = 24 * 3600 * 1000


@pytest.fixture
def scheduler(fake_client, repository, state_store):
    job = FlightDataCollectionJob(fake_client, repository, state_store)
    scheduler = CollectionScheduler(job, state_store, period_seconds=3600, retry_delay_seconds=0.01)
    yield scheduler
    scheduler.shutdown(timeout=1)


@pytest.fixture
def controller(repository, scheduler):
    return StatisticsController(repository, scheduler, initial_delay_seconds=600)


@pytest.mark.parametrize('minutes, expected', [
    (0, '0h 0m'),
    (45, '0h 45m'),
    (330, '5h 30m'),
    (61, '1h 1m'),
])
def test_format_average_time(minutes, expected):
    assert format_average_time(minutes) == expected


def test_route_statistics_busiest_first(controller, repository):
    repository.record_flight(make_payload(flight_iata='BA1', dep_iata='LHR', arr_iata='JFK'))
    repository.record_flight(make_payload(flight_iata='AA1'))
    repository.record_flight(make_payload(flight_iata='AA2'))

    views = controller.route_statistics()

    assert [(v.departure_airport, v.flight_count) for v in views] == [('JFK', 2), ('LHR', 1)]
    assert views[0].average_time == '6h 0m'
    assert views[0].to_dict()['average_time_minutes'] == 360


def test_start_without_tracked_flight_stays_off(controller, fake_client, scheduler):
    assert controller.start_collection() is False

    assert not controller.data_collection_active
    assert not scheduler.is_scheduled()
    assert fake_client.calls == []


def test_start_resets_and_collects(controller, repository, state_store, fake_client, scheduler):
    repository.record_flight(make_payload(), StoreMode.INITIAL_TRACKING)
    state_store.record_success(now_ms())
    fake_client.queue(found(flight_iata='DL200'))

    assert controller.start_collection() is True
    scheduler.get_work(WORK_NAME_ONE_SHOT).join(2)

    assert controller.data_collection_active
    assert scheduler.is_scheduled()
    assert fake_client.calls == [('route', 'JFK', 'LAX')]
    assert state_store.collection_count == 1
    assert scheduler.get_work(WORK_NAME_ONE_SHOT).state == WorkState.SUCCEEDED


def test_stop_cancels_work(controller, repository, scheduler):
    repository.record_flight(make_payload())
    controller.start_collection()

    controller.stop_collection()

    assert not controller.data_collection_active
    assert not scheduler.is_scheduled()


def test_to_dict_includes_summary(controller, repository):
    repository.record_flight(make_payload(flight_iata='AA1'))
    repository.record_flight(make_payload(
        flight_iata='AA2',
        scheduled_dep='2024-05-01T08:00:00',
        scheduled_arr='2024-05-01T13:00:00',
    ))

    data = controller.to_dict()

    assert data['collection_active'] is False
    assert data['routes'][0]['average_time'] == '5h 30m'
    assert data['summary'] == {'routes': 1, 'flights': 2, 'weighted_average_minutes': 330}


def test_route_analytics(repository):
    now = now_ms()
    repository.record_flight(make_payload(flight_iata='AA1', arr_delay=5), captured_at=now - 20 * DAY)
    repository.record_flight(make_payload(
        flight_iata='AA2',
        scheduled_dep='2024-05-01T08:00:00',
        scheduled_arr='2024-05-01T13:00:00',
        arr_delay=40,
    ), captured_at=now - DAY)

    analytics = RouteAnalyzer(repository).analyze_route('jfk', 'lax', now=now)

    assert analytics.total_samples == 2
    assert analytics.flight_numbers == ['AA1', 'AA2']
    assert analytics.on_time_ratio == 0.5
    assert analytics.mean_arrival_delay == 22.5
    assert analytics.recent_sample_count == 1
    data = analytics.to_dict()
    assert data['route']['departure_airport'] == 'JFK'
    assert data['delays']['on_time_ratio'] == 0.5


def test_route_analytics_unknown_route(controller):
    assert controller.route_analytics('AAA', 'BBB') is None
