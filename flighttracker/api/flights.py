"""
Flight view API endpoints.

Provides endpoints for:
- GET /api/flights - Latest known status for every passenger
- GET /api/flights/<id> - Latest known status for one passenger
"""

import logging
import time

from flask import Blueprint, jsonify, current_app

from flighttracker.resolver import LatestStateResolver

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


def _resolver() -> LatestStateResolver:
    return LatestStateResolver(current_app.config['TRACKER_STORE'])


@flights_bp.route('', methods=['GET'])
def list_flights():
    """
    List every passenger with their latest flight status.

    Returns a JSON array ordered by passenger id. Telemetry keys are
    present only for passengers with at least one observation.
    """
    start_time = time.perf_counter()

    views = _resolver().current_view()

    query_time_ms = (time.perf_counter() - start_time) * 1000
    logger.debug(f'Resolved {len(views)} flight views in {query_time_ms:.2f}ms')

    return jsonify([v.to_dict() for v in views])


@flights_bp.route('/<int:passenger_id>', methods=['GET'])
def get_flight(passenger_id: int):
    """Get the latest flight status for a single passenger."""
    start_time = time.perf_counter()

    view = _resolver().view_for(passenger_id)
    if view is None:
        return jsonify({'error': 'Passenger not found'}), 404

    result = view.to_dict()
    query_time_ms = (time.perf_counter() - start_time) * 1000
    result['query_time_ms'] = round(query_time_ms, 2)

    return jsonify(result)
