"""
FlightRecord model - one observed snapshot of a flight.

Every successful lookup that yields both airport codes becomes a row
here. Rows are the source of truth for route statistics: the
route_statistics table can always be recomputed from them.

Design notes:
- Times are integer epoch milliseconds (scheduled, actual, captured_at)
- captured_at is when we observed the flight, not a flight time
- Indexed for latest-by-flight-number and per-route queries
"""

import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Integer, String, Index
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base

MS_PER_MINUTE = 60_000
MS_PER_DAY = 24 * 3600 * 1000


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class FlightRecord(Base):
    """
    Snapshot of a single flight at a point in time.

    Never mutated after insert, except when a tracking poll supersedes
    the latest snapshot of the same flight number.
    """

    __tablename__ = 'flight_records'

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    # Flight identification
    flight_number: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
        comment='IATA flight number (e.g., AA100)'
    )

    airline: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default='Unknown Airline',
    )

    # Route
    departure_airport: Mapped[str] = mapped_column(String(4), nullable=False, comment='Departure IATA code')
    departure_city: Mapped[str] = mapped_column(String(100), nullable=False, default='Unknown City')
    arrival_airport: Mapped[str] = mapped_column(String(4), nullable=False, comment='Arrival IATA code')
    arrival_city: Mapped[str] = mapped_column(String(100), nullable=False, default='Unknown City')

    # Times (epoch ms)
    scheduled_departure_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    actual_departure_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    scheduled_arrival_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    actual_arrival_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Delays
    departure_delay_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    arrival_delay_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Derived
    flight_time_minutes: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Actual or delay-adjusted scheduled duration'
    )

    flight_date: Mapped[str] = mapped_column(String(10), nullable=False, comment='YYYY-MM-DD')
    flight_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    captured_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=now_ms,
        index=True,  # Index for retention cleanup
        comment='Epoch ms when this snapshot was taken'
    )

    __table_args__ = (
        Index('ix_flight_records_route', 'departure_airport', 'arrival_airport'),
        Index('ix_flight_records_latest', 'flight_number', 'captured_at'),
    )

    def __repr__(self) -> str:
        return f'<FlightRecord {self.id} {self.flight_number} {self.departure_airport}->{self.arrival_airport}>'

    @property
    def route(self) -> tuple:
        return (self.departure_airport, self.arrival_airport)

    @property
    def captured_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.captured_at / 1000, tz=timezone.utc)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'id': self.id,
            'flight_number': self.flight_number,
            'airline': self.airline,
            'departure': {
                'airport': self.departure_airport,
                'city': self.departure_city,
                'scheduled': self.scheduled_departure_time,
                'actual': self.actual_departure_time,
                'delay_minutes': self.departure_delay_minutes,
            },
            'arrival': {
                'airport': self.arrival_airport,
                'city': self.arrival_city,
                'scheduled': self.scheduled_arrival_time,
                'actual': self.actual_arrival_time,
                'delay_minutes': self.arrival_delay_minutes,
            },
            'flight_time_minutes': self.flight_time_minutes,
            'flight_date': self.flight_date,
            'flight_status': self.flight_status,
            'captured_at': self.captured_at,
        }


def get_retention_cutoff_ms(days: int, now: Optional[int] = None) -> int:
    """
    Calculate epoch-ms cutoff for retention.

    Records older than this should be deleted.
    """
    reference = now if now is not None else now_ms()
    return reference - days * MS_PER_DAY
