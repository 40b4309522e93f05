"""Persistent client identity: session id, landing path and anonymous first-seen time.

Values live in durable per-browser key/value storage under namespaced keys.
Storage calls may block (database round-trips), so they run in a worker
thread. When storage is missing or failing, every operation degrades to an
ephemeral value instead of raising.
"""

import asyncio
import math
from typing import Optional

from elakbay.lib.clock import Clock, IdGenerator, SystemClock, UuidGenerator
from elakbay.lib.config import DEFAULT_STORAGE_PREFIX
from elakbay.lib.storage import KeyValueStore
from elakbay.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)


class IdentityStore:
    """Session identity for one browser profile.

    Keys:
        {prefix}-session-id: opaque session id, created lazily, kept forever
        {prefix}-landing-path: first path ever stored, never overwritten
        {prefix}-anon-first-seen: ms timestamp of the first anonymous sighting
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
        prefix: str = DEFAULT_STORAGE_PREFIX,
    ):
        """Initialize identity store.

        Args:
            store: Durable key/value storage, None when unavailable
            clock: Time source (system clock by default)
            id_generator: Session id source (UUID4 by default)
            prefix: Namespace for storage keys
        """
        self.store = store
        self.clock = clock or SystemClock()
        self.id_generator = id_generator or UuidGenerator(self.clock)
        self.session_key = f'{prefix}-session-id'
        self.landing_key = f'{prefix}-landing-path'
        self.anon_first_seen_key = f'{prefix}-anon-first-seen'
        self._ephemeral_session_id: Optional[str] = None
        # Serializes read-then-create so concurrent tracking calls agree on one value
        self._lock = asyncio.Lock()

    @property
    def has_storage(self) -> bool:
        return self.store is not None

    async def _read(self, key: str) -> Optional[str]:
        if self.store is None:
            return None
        try:
            return await asyncio.to_thread(self.store.get_item, key)
        except Exception as e:
            logger.warning(f'Client storage read failed for {key}: {e}')
            return None

    async def _write(self, key: str, value: str) -> bool:
        if self.store is None:
            return False
        try:
            await asyncio.to_thread(self.store.set_item, key, value)
            return True
        except Exception as e:
            logger.warning(f'Client storage write failed for {key}: {e}')
            return False

    async def get_or_create_session_id(self) -> str:
        """Return the stored session id, creating and persisting one if absent.

        If the id cannot be persisted it is kept on this object only.
        """
        async with self._lock:
            existing = await self._read(self.session_key)
            if existing:
                return existing

            if self._ephemeral_session_id:
                return self._ephemeral_session_id

            generated = self.id_generator.new_id()
            if not await self._write(self.session_key, generated):
                self._ephemeral_session_id = generated
            return generated

    async def get_or_create_landing_path(self, current_path: str) -> str:
        """Return the first path ever stored, storing current_path if there is none."""
        async with self._lock:
            existing = await self._read(self.landing_key)
            if existing:
                return existing
            await self._write(self.landing_key, current_path)
            return current_path

    async def get_anonymous_first_seen(self) -> Optional[float]:
        """Return the anonymous first-seen timestamp (ms), None if absent or malformed."""
        raw = await self._read(self.anon_first_seen_key)
        if not raw:
            return None
        try:
            parsed = float(raw)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None

    async def ensure_anonymous_first_seen(self) -> None:
        """Record the current time as first-seen unless a usable value exists."""
        if not self.has_storage:
            return
        async with self._lock:
            if await self.get_anonymous_first_seen():
                return
            await self._write(self.anon_first_seen_key, str(self.clock.now_ms()))
