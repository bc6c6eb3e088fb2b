"""
CollectionState model - small key/value store for the collection job.

Holds the job's bookkeeping (success count, last run time) and the
last-known route pair. Kept in the same database so a single handle
covers all persisted state.
"""

from typing import Optional, Tuple

from sqlalchemy import String, select
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base, Database

KEY_COLLECTION_COUNT = 'collection_count'
KEY_LAST_COLLECTION_TIME = 'last_collection_time'
KEY_DEPARTURE_AIRPORT = 'last_departure_airport'
KEY_ARRIVAL_AIRPORT = 'last_arrival_airport'


class CollectionState(Base):
    """One key/value pair."""

    __tablename__ = 'collection_state'

    key: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f'<CollectionState {self.key}={self.value}>'


class CollectionStateStore:
    """Typed accessors over the collection_state table."""

    def __init__(self, database: Database):
        self.database = database

    def _get(self, key: str) -> Optional[str]:
        with self.database.session() as session:
            row = session.get(CollectionState, key)
            return row.value if row else None

    def _set_many(self, values: dict) -> None:
        with self.database.session() as session:
            for key, value in values.items():
                session.merge(CollectionState(key=key, value=None if value is None else str(value)))

    def _get_int(self, key: str) -> int:
        value = self._get(key)
        try:
            return int(value) if value is not None else 0
        except ValueError:
            return 0

    @property
    def collection_count(self) -> int:
        return self._get_int(KEY_COLLECTION_COUNT)

    @property
    def last_collection_time(self) -> int:
        """Epoch ms of the last successful collection, 0 if never."""
        return self._get_int(KEY_LAST_COLLECTION_TIME)

    def record_success(self, collected_at: int) -> int:
        """Increment the success count and stamp the time. Returns the new count."""
        count = self.collection_count + 1
        self._set_many({
            KEY_COLLECTION_COUNT: count,
            KEY_LAST_COLLECTION_TIME: collected_at,
        })
        return count

    def reset(self) -> None:
        """Zero the counters so collection can start a new series."""
        self._set_many({
            KEY_COLLECTION_COUNT: 0,
            KEY_LAST_COLLECTION_TIME: 0,
        })

    def get_last_route(self) -> Optional[Tuple[str, str]]:
        with self.database.session() as session:
            rows = session.execute(
                select(CollectionState).where(
                    CollectionState.key.in_([KEY_DEPARTURE_AIRPORT, KEY_ARRIVAL_AIRPORT])
                )
            ).scalars().all()
        values = {row.key: row.value for row in rows}
        departure = values.get(KEY_DEPARTURE_AIRPORT)
        arrival = values.get(KEY_ARRIVAL_AIRPORT)
        if not departure or not arrival:
            return None
        return departure, arrival

    def set_last_route(self, departure_airport: str, arrival_airport: str) -> None:
        self._set_many({
            KEY_DEPARTURE_AIRPORT: departure_airport,
            KEY_ARRIVAL_AIRPORT: arrival_airport,
        })

    def snapshot(self) -> dict:
        route = self.get_last_route()
        return {
            'collection_count': self.collection_count,
            'last_collection_time': self.last_collection_time,
            'last_route': list(route) if route else None,
        }
