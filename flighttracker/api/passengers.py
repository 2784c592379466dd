"""
Passenger manifest API endpoints.

Provides endpoints for:
- POST /api/upload - Import a CSV passenger manifest
- POST /api/passengers/clear - Delete all passengers and observations
"""

import logging

from flask import Blueprint, jsonify, request, current_app

from flighttracker.exceptions import ClearPartialFailure, ManifestEncodingError, SchemaMismatch
from flighttracker.ingestion import ManifestIngestor

logger = logging.getLogger(__name__)

passengers_bp = Blueprint('passengers', __name__, url_prefix='/api')


def _read_upload() -> bytes:
    """CSV bytes from a multipart 'file' field, or the raw request body."""
    upload = request.files.get('file')
    if upload is not None:
        return upload.read()
    return request.get_data()


@passengers_bp.route('/upload', methods=['POST'])
def upload_manifest():
    """
    Import a passenger manifest.

    Body: CSV either as multipart field 'file' or as the raw request body.
    Header must contain name, airline, flight_number, departure_airport,
    arrival_airport and departure_date. Rows missing a value are skipped
    and counted.
    """
    data = _read_upload()
    if not data or not data.strip():
        return jsonify({'success': False, 'message': 'Empty upload'}), 400

    logger.info(f'Received manifest upload ({len(data)} bytes)')

    ingestor = ManifestIngestor(current_app.config['TRACKER_STORE'])
    try:
        report = ingestor.ingest_bytes(data)
    except SchemaMismatch as e:
        logger.warning(f'Manifest rejected: {e}')
        return jsonify({
            'success': False,
            'message': 'Invalid CSV format - headers do not match expected format',
            'missing_columns': e.missing,
        }), 400
    except ManifestEncodingError as e:
        logger.warning(f'Manifest rejected: {e}')
        return jsonify({
            'success': False,
            'message': 'Invalid file encoding - manifest must be UTF-8 text',
        }), 400

    return jsonify({
        'success': True,
        'message': 'File processed successfully',
        **report.to_dict(),
    })


@passengers_bp.route('/passengers/clear', methods=['POST'])
def clear_passengers():
    """
    Delete ALL passengers and their status history.

    There is no confirmation step; the response reports exactly how many
    rows were removed.
    """
    store = current_app.config['TRACKER_STORE']
    try:
        result = store.clear_all()
    except ClearPartialFailure as e:
        return jsonify({
            'success': False,
            'message': f'Error clearing passenger data: {e}',
        }), 500

    logger.info(f'Clear requested from {request.remote_addr}: {result.to_dict()}')

    return jsonify({
        'success': True,
        'message': 'All passenger data cleared successfully',
        **result.to_dict(),
    })
