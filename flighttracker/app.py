"""
FlightTracker Flask Application.

Main entry point for the web application. Initializes:
- Database schema
- AviationStack client and flight repository
- Collection job and scheduler
- Tracking and statistics controllers
- API routes

Usage:
    python -m flighttracker.app

Or with gunicorn:
    gunicorn 'flighttracker.app:create_app()'
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from flighttracker.config import AppConfig, config
from flighttracker.errors import ErrorKind, FlightTrackerError
from flighttracker.models import CollectionStateStore, Database
from flighttracker.api import tracking_bp, statistics_bp
from flighttracker.analytics import RouteAnalyzer
from flighttracker.ingestion import FlightApiClient, FlightRepository
from flighttracker.jobs import CollectionScheduler, FlightDataCollectionJob
from flighttracker.services import FlightTrackingSession, StatisticsController

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NETWORK: 502,
    ErrorKind.API: 502,
    ErrorKind.UNKNOWN: 500,
}


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


@dataclass
class AppServices:
    """Every long-lived component, wired once per application."""
    config: AppConfig
    database: Database
    state_store: CollectionStateStore
    client: FlightApiClient
    repository: FlightRepository
    job: FlightDataCollectionJob
    scheduler: CollectionScheduler
    tracking: FlightTrackingSession
    statistics: StatisticsController

    def shutdown(self) -> None:
        self.tracking.close()
        self.scheduler.shutdown()
        self.database.dispose()


def build_services(
    app_config: Optional[AppConfig] = None,
    database: Optional[Database] = None,
    client: Optional[FlightApiClient] = None,
) -> AppServices:
    """Construct and connect all components with explicit dependencies."""
    app_config = app_config or config

    database = database or Database.from_config(app_config)
    database.init_schema()

    state_store = CollectionStateStore(database)
    client = client or FlightApiClient.from_config(app_config)
    repository = FlightRepository(database, state_store=state_store)

    job = FlightDataCollectionJob.from_config(client, repository, state_store, app_config)
    scheduler = CollectionScheduler.from_config(job, state_store, app_config)

    tracking = FlightTrackingSession.from_config(client, repository, app_config)
    statistics = StatisticsController(
        repository,
        scheduler,
        analyzer=RouteAnalyzer(repository),
        initial_delay_seconds=app_config.collection.initial_delay_minutes * 60,
    )

    return AppServices(
        config=app_config,
        database=database,
        state_store=state_store,
        client=client,
        repository=repository,
        job=job,
        scheduler=scheduler,
        tracking=tracking,
        statistics=statistics,
    )


def create_app(
    app_config: Optional[AppConfig] = None,
    services: Optional[AppServices] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        app_config: Configuration (module default if None)
        services: Pre-built components, e.g. with a fake API client for tests

    Returns:
        Configured Flask application instance.
    """
    app_config = app_config or (services.config if services else config)
    configure_logging(app_config.debug)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = app_config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    logger.info('Initializing services...')
    if services is None:
        services = build_services(app_config)
    app.extensions['flighttracker'] = services

    if not app_config.aviationstack.is_configured:
        logger.warning('AVIATIONSTACK_API_KEY not set. Flight lookups will fail until it is configured.')

    app.register_blueprint(tracking_bp)
    app.register_blueprint(statistics_bp)

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(FlightTrackerError)
    def tracker_error(e: FlightTrackerError):
        return jsonify({'error': str(e), 'kind': e.kind.value}), _ERROR_STATUS[e.kind]

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))
    logger.info(f'Starting FlightTracker on http://localhost:{port}')

    try:
        app.run(
            host='0.0.0.0',
            port=port,
            debug=config.debug,
            use_reloader=False,  # Reloader would duplicate poll and job threads
        )
    finally:
        app.extensions['flighttracker'].shutdown()


if __name__ == '__main__':
    run_development_server()
