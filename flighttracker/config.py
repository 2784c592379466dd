"""
Configuration management for the passenger flight tracker.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _parse_bool(value: str) -> bool:
    """Parse common truthy strings ('1', 'true', 'yes')."""
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flight_tracker.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class ProviderConfig:
    """Flight status provider (AviationStack) configuration."""
    api_key: Optional[str] = os.getenv('AVIATIONSTACK_API_KEY') or None
    base_url: str = os.getenv('AVIATIONSTACK_BASE_URL', 'http://api.aviationstack.com/v1')
    timeout_seconds: float = float(os.getenv('PROVIDER_TIMEOUT_SECONDS', '10'))
    min_request_interval: float = 1.0  # seconds between API requests
    demo_mode: bool = _parse_bool(os.getenv('PROVIDER_DEMO_MODE', 'false'))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class RefreshConfig:
    """Status refresh schedule."""
    interval_minutes: int = int(os.getenv('REFRESH_INTERVAL_MINUTES', '15'))

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    database: DatabaseConfig
    provider: ProviderConfig
    refresh: RefreshConfig

    # Flask settings
    secret_key: str
    debug: bool
    port: int


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        database=DatabaseConfig(),
        provider=ProviderConfig(),
        refresh=RefreshConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
        port=int(os.getenv('PORT', '8888')),
    )


# Singleton instance
config = load_config()
