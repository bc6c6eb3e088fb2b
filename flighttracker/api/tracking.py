"""
Tracking API endpoints.

Provides endpoints for:
- GET /api/tracking - Current tracking state
- POST /api/tracking - Start tracking a flight number
- DELETE /api/tracking - Stop tracking
"""

import logging

from flask import Blueprint, jsonify, request, current_app

from flighttracker.errors import ValidationError
from flighttracker.services.tracking import MESSAGE_INVALID_NUMBER

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/tracking')


def _session():
    return current_app.extensions['flighttracker'].tracking


@tracking_bp.route('', methods=['GET'])
def get_tracking_state():
    """Return the published tracking state."""
    return jsonify(_session().to_dict())


@tracking_bp.route('', methods=['POST'])
def start_tracking():
    """
    Start tracking a flight.

    Body: {"flight_number": "AA100"}

    The first lookup happens before the response is sent; polling then
    continues in the background.
    """
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')

    flight_number = body.get('flight_number') or request.args.get('flight_number', '')
    if not isinstance(flight_number, str):
        raise ValidationError(MESSAGE_INVALID_NUMBER)

    session = _session()
    session.track_flight(flight_number)
    if session.state.message == MESSAGE_INVALID_NUMBER:
        raise ValidationError(MESSAGE_INVALID_NUMBER)

    return jsonify(session.to_dict())


@tracking_bp.route('', methods=['DELETE'])
def stop_tracking():
    """Stop tracking the current flight."""
    session = _session()
    session.stop_tracking()
    return jsonify(session.to_dict())
