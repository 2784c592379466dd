"""
API module for the flight tracker.

Provides REST endpoints for:
- Flight views (latest status per passenger)
- Manifest upload and clear
- Refresh status
"""

from flighttracker.api.flights import flights_bp
from flighttracker.api.passengers import passengers_bp
from flighttracker.api.status import status_bp

__all__ = ['flights_bp', 'passengers_bp', 'status_bp']
