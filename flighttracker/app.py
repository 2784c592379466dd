"""
Flight Tracker Flask Application.

Main entry point for the web application. Initializes:
- Passenger/observation store
- Optional manifest import
- Status refresh scheduler
- API routes

Usage:
    python -m flighttracker.app [manifest.csv]

Or with gunicorn:
    gunicorn "flighttracker.app:create_app()"
"""

import logging
import sys
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from flighttracker.config import config
from flighttracker.exceptions import StoreUnavailable
from flighttracker.store import TrackerStore
from flighttracker.api import flights_bp, passengers_bp, status_bp
from flighttracker.ingestion import (
    ManifestIngestor,
    RefreshScheduler,
    StatusProvider,
    StatusRefresher,
    build_provider,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    store: Optional[TrackerStore] = None,
    provider: Optional[StatusProvider] = None,
    start_refresher: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        store: Tracker store (created from config if None)
        provider: Status provider (chosen from config if None)
        start_refresher: Whether to start the background refresh scheduler.
                         Set to False for testing.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    # Initialize storage
    if store is None:
        logger.info('Initializing database...')
        store = TrackerStore(config.database.url, echo=config.debug)
    app.config['TRACKER_STORE'] = store

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(passengers_bp)
    app.register_blueprint(status_bp)

    # Refresh scheduler (constructed even when not started so manual
    # refreshes through the API still work)
    scheduler = RefreshScheduler(
        StatusRefresher(store),
        provider or build_provider(),
        interval_seconds=config.refresh.interval_seconds,
    )
    app.config['REFRESH_SCHEDULER'] = scheduler

    if start_refresher:
        scheduler.start()
        logger.info(f'Status refresh scheduled every {config.refresh.interval_minutes} minutes')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(e):
        logger.error(f'Store unavailable: {e}')
        return jsonify({'error': 'Storage unavailable'}), 503

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {'error': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server(manifest_path: Optional[str] = None):
    """Run the development server, importing a manifest first if given."""
    store = TrackerStore(config.database.url, echo=config.debug)

    if manifest_path:
        logger.info(f'Processing manifest file: {manifest_path}')
        report = ManifestIngestor(store).ingest_csv(manifest_path)
        logger.info(f'Imported {report.ingested} passengers ({report.skipped} rows skipped)')

    app = create_app(store=store)

    logger.info(f'Starting flight tracker on http://localhost:{config.port}')

    try:
        app.run(
            host='0.0.0.0',
            port=config.port,
            debug=config.debug,
            use_reloader=False,  # Reloader would start a second scheduler thread
        )
    finally:
        app.config['REFRESH_SCHEDULER'].stop(timeout=5)


if __name__ == '__main__':
    run_development_server(sys.argv[1] if len(sys.argv) > 1 else None)
