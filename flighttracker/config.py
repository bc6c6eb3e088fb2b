"""
Configuration management for FlightTracker.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: str) -> float:
    """Read a float from the environment, falling back on bad input."""
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return float(default)


@dataclass(frozen=True)
class AviationStackConfig:
    """AviationStack API configuration for flight status lookups."""
    api_key: Optional[str] = field(default_factory=lambda: os.getenv('AVIATIONSTACK_API_KEY') or None)
    base_url: str = field(default_factory=lambda: os.getenv('AVIATIONSTACK_BASE_URL', 'http://api.aviationstack.com/v1'))
    timeout: float = field(default_factory=lambda: _env_float('AVIATIONSTACK_TIMEOUT', '10'))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = field(default_factory=lambda: os.getenv('DATABASE_URL', 'sqlite:///flighttracker.db'))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class TrackingConfig:
    """Live tracking session settings."""
    poll_interval_seconds: float = field(default_factory=lambda: _env_float('TRACKING_POLL_SECONDS', '60'))


@dataclass(frozen=True)
class CollectionConfig:
    """Background route collection settings."""
    max_collections: int = field(default_factory=lambda: int(os.getenv('MAX_COLLECTIONS', '10')))

    # 0 disables the throttle entirely
    min_interval_hours: float = field(default_factory=lambda: _env_float('MIN_COLLECTION_INTERVAL_HOURS', '2'))

    period_hours: float = field(default_factory=lambda: _env_float('COLLECTION_PERIOD_HOURS', '8'))
    initial_delay_minutes: float = field(default_factory=lambda: _env_float('COLLECTION_INITIAL_DELAY_MINUTES', '15'))

    # Job runner retry policy
    retry_delay_seconds: float = 30.0
    max_retries: int = 3

    @property
    def min_interval_ms(self) -> int:
        return int(self.min_interval_hours * 3600 * 1000)


@dataclass(frozen=True)
class RetentionConfig:
    """Data retention policy."""
    days: int = field(default_factory=lambda: int(os.getenv('RETENTION_DAYS', '30')))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    aviationstack: AviationStackConfig
    database: DatabaseConfig
    tracking: TrackingConfig
    collection: CollectionConfig
    retention: RetentionConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        aviationstack=AviationStackConfig(),
        database=DatabaseConfig(),
        tracking=TrackingConfig(),
        collection=CollectionConfig(),
        retention=RetentionConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Default instance; components accept explicit overrides
config = load_config()
