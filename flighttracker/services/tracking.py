"""
Tracking session - follows one flight number with a fixed-interval poll.

State machine:
    INITIAL -> LOADING -> SUCCESS(flight) | ERROR(message)

plus an independent `stopped` flag. Starting a new track stops the
previous one. Every track and stop bumps a generation counter; a fetch
that completes under an older generation is discarded, so results of
in-flight requests never leak into a session that has moved on.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from flighttracker.errors import ErrorKind
from flighttracker.ingestion.aviationstack_client import FlightApiClient, FlightPayload
from flighttracker.ingestion.repository import FlightRepository, StoreMode

logger = logging.getLogger(__name__)

MESSAGE_INVALID_NUMBER = 'Please enter a valid flight number'
MESSAGE_NOT_FOUND = 'Flight not found'
MESSAGE_NETWORK_ERROR = 'Network Error. Please try again later'

FETCH_TIME_FORMAT = '%b %d, %Y %H:%M:%S'


class TrackingStatus(str, Enum):
    INITIAL = 'initial'
    LOADING = 'loading'
    SUCCESS = 'success'
    ERROR = 'error'


@dataclass(frozen=True)
class TrackingState:
    """Published state of the tracking session."""
    status: TrackingStatus
    flight: Optional[FlightPayload] = None
    message: Optional[str] = None

    @classmethod
    def initial(cls) -> 'TrackingState':
        return cls(TrackingStatus.INITIAL)

    @classmethod
    def loading(cls) -> 'TrackingState':
        return cls(TrackingStatus.LOADING)

    @classmethod
    def success(cls, flight: FlightPayload) -> 'TrackingState':
        return cls(TrackingStatus.SUCCESS, flight=flight)

    @classmethod
    def error(cls, message: str) -> 'TrackingState':
        return cls(TrackingStatus.ERROR, message=message)

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'flight': self.flight.to_dict() if self.flight else None,
            'message': self.message,
        }


class FlightTrackingSession:
    """
    Tracks a single flight, refreshing it every poll_interval seconds.

    The first fetch runs synchronously inside track_flight(); later
    fetches run on a daemon poll thread. Successful results are stored:
    the first of a session as a new snapshot, later ones superseding it.
    """

    def __init__(
        self,
        client: FlightApiClient,
        repository: FlightRepository,
        poll_interval: float = 60,
    ):
        self.client = client
        self.repository = repository
        self.poll_interval = poll_interval

        self._lock = threading.RLock()
        self._state = TrackingState.initial()
        self._stopped = False
        self._last_fetch_time: Optional[str] = None
        self._flight_number: Optional[str] = None
        self._generation = 0
        self._initial_saved = False

        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

        self._listeners: List[Callable[[TrackingState], None]] = []

    @classmethod
    def from_config(cls, client: FlightApiClient, repository: FlightRepository, app_config=None) -> 'FlightTrackingSession':
        if app_config is None:
            from flighttracker.config import config as app_config
        return cls(client, repository, poll_interval=app_config.tracking.poll_interval_seconds)

    # -------------------------------------------------------------------------
    # Published state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> TrackingState:
        with self._lock:
            return self._state

    @property
    def is_tracking_stopped(self) -> bool:
        with self._lock:
            return self._stopped

    @property
    def last_fetch_time(self) -> Optional[str]:
        with self._lock:
            return self._last_fetch_time

    @property
    def flight_number(self) -> Optional[str]:
        with self._lock:
            return self._flight_number

    @property
    def is_polling(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def add_listener(self, callback: Callable[[TrackingState], None]) -> None:
        """Register a callback invoked with every new state."""
        self._listeners.append(callback)

    def _publish(self, state: TrackingState, generation: Optional[int] = None) -> bool:
        """Set and broadcast state. With a generation, only while it is still current."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._state = state
        for callback in self._listeners:
            try:
                callback(state)
            except Exception as e:
                logger.error(f'Tracking listener error: {e}')
        return True

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def track_flight(self, flight_number: Optional[str]) -> TrackingState:
        """Start tracking a flight. Returns the state after the first fetch."""
        if not isinstance(flight_number, str) or not flight_number.strip():
            self._publish(TrackingState.error(MESSAGE_INVALID_NUMBER))
            return self.state

        flight_number = flight_number.strip().upper()

        self._publish(TrackingState.loading())
        with self._lock:
            self._stopped = False
        self.stop_tracking(set_stopped_flag=False)

        with self._lock:
            self._flight_number = flight_number
            self._initial_saved = False
            generation = self._generation

        logger.info(f'Tracking flight {flight_number}')
        self._fetch(flight_number, generation)

        with self._lock:
            # The first fetch may already have stopped the session
            if generation == self._generation:
                stop_event = threading.Event()
                self._stop_event = stop_event
                self._thread = threading.Thread(
                    target=self._poll_loop,
                    args=(flight_number, generation, stop_event),
                    name=f'tracking-{flight_number}',
                    daemon=True,
                )
                self._thread.start()

        return self.state

    def stop_tracking(self, set_stopped_flag: bool = True) -> None:
        """Stop polling. Results of fetches still in flight are discarded."""
        with self._lock:
            self._generation += 1
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._thread = None
            self._flight_number = None

            if set_stopped_flag:
                self._stopped = True

    def close(self) -> None:
        self.stop_tracking()

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    def _poll_loop(self, flight_number: str, generation: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.poll_interval):
            self._fetch(flight_number, generation)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _fetch(self, flight_number: str, generation: int) -> None:
        with self._lock:
            self._last_fetch_time = datetime.now().strftime(FETCH_TIME_FORMAT)

        result = self.client.fetch_by_number(flight_number)

        if not self._is_current(generation):
            logger.debug(f'Discarding stale result for {flight_number}')
            return

        if result.is_found:
            if self._publish(TrackingState.success(result.flight), generation):
                self._save(result.flight, generation)
            return

        if result.error_kind == ErrorKind.NOT_FOUND:
            logger.info(f'Flight {flight_number} not found')
            published = self._publish(TrackingState.error(MESSAGE_NOT_FOUND), generation)
        else:
            logger.error(f'API Error for {flight_number}: {result.error_kind.value} {result.detail}')
            published = self._publish(TrackingState.error(MESSAGE_NETWORK_ERROR), generation)

        if not published:
            return

        with self._lock:
            if generation == self._generation:
                self.stop_tracking(set_stopped_flag=True)

    def _save(self, flight: FlightPayload, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            mode = StoreMode.PERIODIC_UPDATE if self._initial_saved else StoreMode.INITIAL_TRACKING

        outcome = self.repository.record_flight(flight, mode)
        if outcome.stored:
            with self._lock:
                if generation == self._generation:
                    self._initial_saved = True
        else:
            logger.warning(f'Tracked flight {flight.flight_iata} not stored: {outcome.reason}')

    def to_dict(self) -> dict:
        with self._lock:
            data = self._state.to_dict()
            data.update({
                'flight_number': self._flight_number,
                'stopped': self._stopped,
                'polling': self._thread is not None and self._thread.is_alive(),
                'last_fetch_time': self._last_fetch_time,
                'poll_interval_seconds': self.poll_interval,
            })
        return data
