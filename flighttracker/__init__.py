"""
Passenger Flight Tracker Backend Package.

Tracks a roster of passengers and periodically refreshes each one's live
flight status, built with Flask, SQLAlchemy, and requests.

Modules:
    api/         REST endpoints for flight views, manifest upload, and status
    models/      SQLAlchemy ORM models (Passenger, StatusObservation)
    ingestion/   Manifest parsing, status providers, and the refresh scheduler
    store.py     Shared passenger/observation store with latest-state index
    resolver.py  Latest known status per passenger for the read API
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
