"""Per-client tracker contexts for the HTTP service.

Each browser reports with its own client id and gets its own tracker, so
de-duplication slots and identity never leak between browsers. Contexts are
kept in an OrderedDict and the least recently used one is evicted once the
registry is full. An evicted browser starts with fresh de-duplication slots;
its session id, landing path and dwell latch live in the storage built by
storage_factory, which must outlive the tracker.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Callable, Optional

from elakbay.lib.clock import Clock, IdGenerator
from elakbay.lib.config import AnalyticsConfig
from elakbay.lib.storage import KeyValueStore
from elakbay.lib.structured_logger import StructuredLogger
from elakbay.services.analytics_service import AnalyticsTracker
from elakbay.services.event_store import EventStore

logger = StructuredLogger(__name__)


class TrackerRegistry:
    """LRU map of client id to AnalyticsTracker."""

    def __init__(
        self,
        config: AnalyticsConfig,
        event_store: EventStore,
        storage_factory: Optional[Callable[[str], KeyValueStore]] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
    ) -> None:
        """Initialize registry.

        Args:
            config: Analytics configuration (max_clients bounds the registry)
            event_store: Event store shared by all trackers
            storage_factory: Builds durable storage for a client id; None means
                trackers have no durable storage
            clock: Time source passed to every tracker
            id_generator: Session id source passed to every tracker
        """
        self.config = config
        self.event_store = event_store
        self.storage_factory = storage_factory
        self.clock = clock
        self.id_generator = id_generator
        self._trackers: OrderedDict[str, AnalyticsTracker] = OrderedDict()
        self._pending: set[asyncio.Task] = set()
        self._evictions = 0

    def _build(self, store: Optional[KeyValueStore]) -> AnalyticsTracker:
        return AnalyticsTracker.from_config(
            self.config,
            self.event_store,
            store=store,
            clock=self.clock,
            id_generator=self.id_generator,
            pending_tasks=self._pending,
        )

    def get(self, client_id: Optional[str]) -> AnalyticsTracker:
        """Return the tracker for client_id, creating it if needed.

        Without a client id the tracker is throw-away and has no durable storage.
        """
        if not client_id:
            return self._build(store=None)

        tracker = self._trackers.get(client_id)
        if tracker is not None:
            self._trackers.move_to_end(client_id)
            return tracker

        store = self.storage_factory(client_id) if self.storage_factory else None
        tracker = self._build(store)
        self._trackers[client_id] = tracker

        while len(self._trackers) > self.config.max_clients:
            evicted_id, _ = self._trackers.popitem(last=False)
            self._evictions += 1
            logger.debug('Evicted tracker context', client_id=evicted_id)

        return tracker

    async def drain(self) -> None:
        """Wait for every dispatched tracking task to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def stats(self) -> dict[str, int]:
        return {
            'clients': len(self._trackers),
            'pending': len(self._pending),
            'evictions': self._evictions,
        }
