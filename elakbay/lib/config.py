"""Analytics configuration loaded from environment variables.

Environment variables:
    ANALYTICS_STORAGE_PREFIX: Namespace for client storage keys (default: elakbay-analytics)
    ANALYTICS_ANON_MIN_MS: Anonymous dwell time before tracking starts (default: 10000)
    ANALYTICS_TRACKED_ROLE: The only authenticated role that is tracked (default: tourist)
    ANALYTICS_EVENT_STORE: 'database', 'rest' or 'memory' (default: database)
    ANALYTICS_EVENTS_TABLE: Table/resource name for events (default: analytics_events)
    SUPABASE_URL / SUPABASE_ANON_KEY: Hosted backend for the 'rest' store
    ANALYTICS_REST_TIMEOUT_SECONDS: HTTP timeout for the 'rest' store (default: 10)
    ANALYTICS_MAX_CLIENTS: Tracker contexts kept in memory by the service (default: 10000)
"""

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from elakbay.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)

DEFAULT_STORAGE_PREFIX = 'elakbay-analytics'
DEFAULT_ANON_MIN_MS = 10_000
DEFAULT_TRACKED_ROLE = 'tourist'
DEFAULT_EXCLUDED_PATH_PREFIXES = ('/dashboard', '/admin')


def load_env_files(*filenames: str) -> None:
    """Load .env style files that exist, without overriding the real environment."""
    for filename in filenames:
        if Path(filename).exists():
            load_dotenv(dotenv_path=filename, override=False)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f'Invalid integer for {name}, using default {default}')
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f'Invalid number for {name}, using default {default}')
        return default


class AnalyticsConfig(BaseModel):
    """Runtime settings for the analytics pipeline and its event store."""

    storage_prefix: str = Field(default=DEFAULT_STORAGE_PREFIX, min_length=1)
    anonymous_min_dwell_ms: int = Field(default=DEFAULT_ANON_MIN_MS, ge=0)
    tracked_role: str = Field(default=DEFAULT_TRACKED_ROLE, min_length=1)
    excluded_path_prefixes: tuple[str, ...] = DEFAULT_EXCLUDED_PATH_PREFIXES
    event_store: Literal['database', 'rest', 'memory'] = 'database'
    events_table: str = Field(default='analytics_events', min_length=1)
    rest_url: Optional[str] = None
    rest_api_key: Optional[str] = None
    rest_timeout_seconds: float = Field(default=10.0, gt=0)
    max_clients: int = Field(default=10_000, ge=1)

    @classmethod
    def from_env(cls) -> 'AnalyticsConfig':
        """Build configuration from environment variables."""
        event_store = os.getenv('ANALYTICS_EVENT_STORE', 'database').lower()
        if event_store not in ('database', 'rest', 'memory'):
            logger.warning(f'Unknown ANALYTICS_EVENT_STORE {event_store!r}, using database')
            event_store = 'database'

        return cls(
            storage_prefix=os.getenv('ANALYTICS_STORAGE_PREFIX') or DEFAULT_STORAGE_PREFIX,
            anonymous_min_dwell_ms=max(_env_int('ANALYTICS_ANON_MIN_MS', DEFAULT_ANON_MIN_MS), 0),
            tracked_role=os.getenv('ANALYTICS_TRACKED_ROLE') or DEFAULT_TRACKED_ROLE,
            event_store=event_store,
            events_table=os.getenv('ANALYTICS_EVENTS_TABLE') or 'analytics_events',
            rest_url=os.getenv('SUPABASE_URL') or None,
            rest_api_key=os.getenv('SUPABASE_ANON_KEY') or None,
            rest_timeout_seconds=max(_env_float('ANALYTICS_REST_TIMEOUT_SECONDS', 10.0), 0.1),
            max_clients=max(_env_int('ANALYTICS_MAX_CLIENTS', 10_000), 1),
        )
