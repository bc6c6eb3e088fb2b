"""
RouteStatistic model - precomputed per-route aggregates.

One row per (departure_airport, arrival_airport) pair, created on the
first snapshot for the route and recomputed from flight_records on every
subsequent one.
"""

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base
from flighttracker.models.flight_record import now_ms


class RouteStatistic(Base):
    """Aggregate statistics for one route."""

    __tablename__ = 'route_statistics'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    departure_airport: Mapped[str] = mapped_column(String(4), nullable=False)
    departure_city: Mapped[str] = mapped_column(String(100), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(String(4), nullable=False)
    arrival_city: Mapped[str] = mapped_column(String(100), nullable=False)

    average_flight_time_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment='Mean duration over every snapshot of the route'
    )

    flight_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment='Distinct flight numbers observed on the route'
    )

    last_updated: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=now_ms,
        index=True,
        comment='Epoch ms of last recompute'
    )

    __table_args__ = (
        UniqueConstraint('departure_airport', 'arrival_airport', name='uq_route_statistics_route'),
    )

    def __repr__(self) -> str:
        return (
            f'<RouteStatistic {self.departure_airport}->{self.arrival_airport} '
            f'avg={self.average_flight_time_minutes}m n={self.flight_count}>'
        )

    @property
    def average_time_display(self) -> str:
        return format_average_time(self.average_flight_time_minutes)

    def to_dict(self) -> dict:
        return {
            'departure_airport': self.departure_airport,
            'departure_city': self.departure_city,
            'arrival_airport': self.arrival_airport,
            'arrival_city': self.arrival_city,
            'average_flight_time_minutes': self.average_flight_time_minutes,
            'average_time': self.average_time_display,
            'flight_count': self.flight_count,
            'last_updated': self.last_updated,
        }


def format_average_time(minutes: int) -> str:
    """Format minutes as '5h 30m'."""
    hours, mins = divmod(int(minutes), 60)
    return f'{hours}h {mins}m'
