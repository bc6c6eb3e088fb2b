"""
Statistics API endpoints.

Provides endpoints for:
- GET /api/statistics/routes - Route aggregates, busiest first
- GET /api/statistics/routes/<dep>/<arr> - Analytics for one route
- GET /api/statistics/records - Stored flight snapshots, newest first
- GET/POST/DELETE /api/statistics/collection - Collection toggle
- POST /api/statistics/collection/now - One immediate collection run
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, current_app

logger = logging.getLogger(__name__)

statistics_bp = Blueprint('statistics', __name__, url_prefix='/api/statistics')


def _services():
    return current_app.extensions['flighttracker']


@statistics_bp.route('/routes', methods=['GET'])
def list_routes():
    """Route statistics with a fleet-wide summary."""
    start_time = time.perf_counter()

    data = _services().statistics.to_dict()

    query_time_ms = (time.perf_counter() - start_time) * 1000
    data.update({
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
    return jsonify(data)


@statistics_bp.route('/routes/<departure>/<arrival>', methods=['GET'])
def get_route(departure: str, arrival: str):
    """Duration and delay analytics for one route."""
    analytics = _services().statistics.route_analytics(departure, arrival)
    if analytics is None:
        return jsonify({'error': f'No data for route {departure.upper()}-{arrival.upper()}'}), 404
    return jsonify(analytics)


@statistics_bp.route('/records', methods=['GET'])
def list_records():
    """
    Stored flight snapshots.

    Query parameters:
    - limit: int, max results to return (default 100, clamped to 1..500)
    """
    try:
        limit = max(1, min(int(request.args.get('limit', 100)), 500))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400

    records = _services().statistics.flight_records(limit=limit)
    return jsonify({
        'records': [r.to_dict() for r in records],
        'count': len(records),
    })


def _collection_status() -> dict:
    services = _services()
    return {
        'collection_active': services.statistics.data_collection_active,
        'scheduler': services.scheduler.stats,
    }


@statistics_bp.route('/collection', methods=['GET'])
def get_collection():
    return jsonify(_collection_status())


@statistics_bp.route('/collection', methods=['POST'])
def start_collection():
    """Turn background collection on."""
    started = _services().statistics.start_collection()
    data = _collection_status()
    data['started'] = started
    return jsonify(data), 200 if started else 409


@statistics_bp.route('/collection', methods=['DELETE'])
def stop_collection():
    """Turn background collection off."""
    _services().statistics.stop_collection()
    return jsonify(_collection_status())


@statistics_bp.route('/collection/now', methods=['POST'])
def collect_now():
    """Queue one immediate collection run."""
    _services().statistics.collect_now()
    return jsonify(_collection_status()), 202
