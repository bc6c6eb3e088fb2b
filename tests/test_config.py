from flighttracker.config import load_config


def test_defaults(monkeypatch):
    for name in (
        'AVIATIONSTACK_API_KEY', 'MAX_COLLECTIONS', 'MIN_COLLECTION_INTERVAL_HOURS',
        'COLLECTION_PERIOD_HOURS', 'TRACKING_POLL_SECONDS', 'RETENTION_DAYS', 'FLASK_DEBUG',
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = load_config()

    assert not cfg.aviationstack.is_configured
    assert cfg.collection.max_collections == 10
    assert cfg.collection.min_interval_ms == 2 * 3600 * 1000
    assert cfg.collection.period_hours == 8
    assert cfg.tracking.poll_interval_seconds == 60
    assert cfg.retention.days == 30
    assert cfg.debug is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('AVIATIONSTACK_API_KEY', 'abc123')
    monkeypatch.setenv('MAX_COLLECTIONS', '3')
    monkeypatch.setenv('MIN_COLLECTION_INTERVAL_HOURS', '0')
    monkeypatch.setenv('DATABASE_URL', 'sqlite:///:memory:')
    monkeypatch.setenv('FLASK_DEBUG', '1')

    cfg = load_config()

    assert cfg.aviationstack.api_key == 'abc123'
    assert cfg.collection.max_collections == 3
    assert cfg.collection.min_interval_ms == 0
    assert cfg.database.is_sqlite
    assert cfg.debug is True


def test_bad_float_falls_back(monkeypatch):
    monkeypatch.setenv('TRACKING_POLL_SECONDS', 'soon')

    assert load_config().tracking.poll_interval_seconds == 60
