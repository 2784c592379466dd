"""
Refresh status API endpoints.

Provides endpoints for:
- GET /api/status - System health, store counts, refresh statistics
- POST /api/status/refresh - Start an out-of-band refresh cycle
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, current_app

from flighttracker.config import config

logger = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__, url_prefix='/api/status')


@status_bp.route('', methods=['GET'])
def get_system_status():
    """
    Get system health and status information.

    Returns:
    - Refresh scheduler status and last report
    - Database connectivity and row counts
    - Configuration info
    """
    start_time = time.perf_counter()

    store = current_app.config['TRACKER_STORE']
    scheduler = current_app.config.get('REFRESH_SCHEDULER')
    refresh_stats = scheduler.stats if scheduler else {'running': False}

    db_ok = store.ping()
    counts = store.counts() if db_ok else None

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if (db_ok and refresh_stats.get('running')) else 'degraded',
        'database': {
            'connected': db_ok,
            'type': 'sqlite' if store.database_url.startswith('sqlite') else 'postgresql',
            'counts': counts,
        },
        'refresh': refresh_stats,
        'config': {
            'refresh_interval_minutes': config.refresh.interval_minutes,
            'provider_timeout_seconds': config.provider.timeout_seconds,
            'provider_demo_mode': config.provider.demo_mode,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@status_bp.route('/refresh', methods=['POST'])
def trigger_refresh():
    """
    Start a refresh cycle now, in the background.

    Returns 202 when a cycle was started, 409 if one is already running.
    """
    scheduler = current_app.config.get('REFRESH_SCHEDULER')
    if scheduler is None:
        return jsonify({'success': False, 'message': 'Refresh scheduler not configured'}), 503

    if not scheduler.trigger():
        return jsonify({'success': False, 'message': 'Refresh already in progress'}), 409

    logger.info('Manual refresh started')
    return jsonify({'success': True, 'message': 'Refresh started'}), 202
