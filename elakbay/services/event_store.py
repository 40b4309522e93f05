"""Event store adapters: the single 'insert analytics event' boundary.

Implementations raise on failure; the tracker decides how to handle it.

- DatabaseEventStore: SQLAlchemy insert into analytics_events
- RestEventStore: hosted PostgREST endpoint (e.g. Supabase) over httpx
- InMemoryEventStore: keeps records in a list (local development)
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol

import httpx
from sqlalchemy.orm import sessionmaker

from elakbay.lib.config import AnalyticsConfig
from elakbay.lib.database import get_session_factory
from elakbay.lib.structured_logger import StructuredLogger
from elakbay.models.analytics_event import AnalyticsEvent

logger = StructuredLogger(__name__)


class EventStoreError(Exception):
    """Raised when the backend rejects an analytics event."""


class EventStore(Protocol):
    backend: str

    async def insert(self, record: Dict[str, Any]) -> None:
        ...


class InMemoryEventStore:
    backend = 'memory'

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []

    async def insert(self, record: Dict[str, Any]) -> None:
        self.records.append(dict(record))

    async def close(self) -> None:
        pass


class DatabaseEventStore:
    """Insert events with SQLAlchemy; the blocking write runs in a worker thread."""

    backend = 'database'

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _insert_sync(self, record: Dict[str, Any]) -> None:
        values = dict(record)
        values['event_metadata'] = values.pop('metadata', None)
        with self.session_factory() as session:
            try:
                session.add(AnalyticsEvent(**values))
                session.commit()
            except Exception:
                session.rollback()
                raise

    async def insert(self, record: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._insert_sync, record)

    async def close(self) -> None:
        pass


class RestEventStore:
    """Insert events through a PostgREST endpoint: POST {base_url}/rest/v1/{table}."""

    backend = 'rest'

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = 'analytics_events',
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not api_key:
            raise ValueError('REST event store requires a base URL and an API key')

        self.table = table
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip('/'),
            timeout=httpx.Timeout(timeout_seconds),
        )
        self.headers = {
            'apikey': api_key,
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
            'Prefer': 'return=minimal',
        }

    async def insert(self, record: Dict[str, Any]) -> None:
        response = await self.client.post(f'/rest/v1/{self.table}', json=record, headers=self.headers)
        if response.is_error:
            raise EventStoreError(
                f'Event store returned {response.status_code}: {response.text[:200]}'
            )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def create_event_store(config: AnalyticsConfig):
    """Build the event store selected by configuration.

    Raises:
        ValueError: If the selected backend is missing its configuration
    """
    if config.event_store == 'memory':
        return InMemoryEventStore()

    if config.event_store == 'rest':
        return RestEventStore(
            base_url=config.rest_url or '',
            api_key=config.rest_api_key or '',
            table=config.events_table,
            timeout_seconds=config.rest_timeout_seconds,
        )

    return DatabaseEventStore(get_session_factory())
