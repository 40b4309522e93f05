"""Analytics tracker: eligibility, de-duplication and best-effort emission.

One AnalyticsTracker is one browser context: it owns the four
de-duplication slots and is bound to that browser's identity store.

Every track_* coroutine runs its gates and then checks and marks the
de-duplication slot with no await in between, before any identity lookup or
write. Two calls scheduled back to back with the same key emit once even
while the first write is still in flight. Failures are logged and reported
as a TrackOutcome; nothing is raised to the caller.
"""

import asyncio
import functools
import re
import time
from typing import Any, Callable, Coroutine, Dict, Optional, Set, Union

from elakbay.lib.clock import Clock, IdGenerator
from elakbay.lib.config import AnalyticsConfig
from elakbay.lib.metrics import record_insert, record_track_outcome
from elakbay.lib.storage import KeyValueStore
from elakbay.lib.structured_logger import StructuredLogger
from elakbay.models.events import (
    AnalyticsEventRecord,
    ContentType,
    EventName,
    SearchScope,
    TrackOutcome,
)
from elakbay.services.dedup import DeduplicationSlots, EventCategory, build_event_key
from elakbay.services.eligibility import EligibilityPolicy, is_owner_view
from elakbay.services.event_store import EventStore
from elakbay.services.identity_store import IdentityStore

logger = StructuredLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE,
)

ANONYMOUS_KEY = 'anon'


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and UUID_PATTERN.match(value) is not None


def build_metadata(user_role: Optional[str], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Event metadata: always user_role, plus event-specific fields."""
    return {'user_role': user_role, **(extra or {})}


def best_effort(event_name: EventName):
    """Wrap a track_* coroutine so it never raises and its outcome is counted."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> TrackOutcome:
            try:
                outcome = await func(self, *args, **kwargs)
            except Exception as e:
                logger.error(
                    f'Tracking call {func.__name__} failed: {e}',
                    exc_info=True,
                    event_name=event_name.value,
                )
                outcome = TrackOutcome.ERROR
            record_track_outcome(event_name.value, outcome.value)
            return outcome

        return wrapper

    return decorator


class AnalyticsTracker:
    """Tracking context for one browser.

    Args:
        event_store: Backend the events are written to
        identity_store: Session identity for this browser
        policy: Eligibility gates (built from identity_store if omitted)
        dedup: De-duplication slots (fresh if omitted)
        location: Returns the current path including query string
        pending_tasks: Set that keeps dispatched tasks alive (shared by a registry)
    """

    def __init__(
        self,
        event_store: EventStore,
        identity_store: IdentityStore,
        policy: Optional[EligibilityPolicy] = None,
        dedup: Optional[DeduplicationSlots] = None,
        location: Optional[Callable[[], str]] = None,
        pending_tasks: Optional[Set[asyncio.Task]] = None,
    ):
        self.event_store = event_store
        self.identity_store = identity_store
        self.policy = policy or EligibilityPolicy(identity_store)
        self.dedup = dedup or DeduplicationSlots()
        self.location = location or (lambda: '/')
        self._pending: Set[asyncio.Task] = pending_tasks if pending_tasks is not None else set()

    @classmethod
    def from_config(
        cls,
        config: AnalyticsConfig,
        event_store: EventStore,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
        location: Optional[Callable[[], str]] = None,
        pending_tasks: Optional[Set[asyncio.Task]] = None,
    ) -> 'AnalyticsTracker':
        """Wire a tracker from configuration and its collaborators."""
        identity_store = IdentityStore(
            store=store,
            clock=clock,
            id_generator=id_generator,
            prefix=config.storage_prefix,
        )
        policy = EligibilityPolicy(
            identity_store,
            tracked_role=config.tracked_role,
            anonymous_min_dwell_ms=config.anonymous_min_dwell_ms,
            excluded_path_prefixes=config.excluded_path_prefixes,
        )
        return cls(
            event_store=event_store,
            identity_store=identity_store,
            policy=policy,
            location=location,
            pending_tasks=pending_tasks,
        )

    # ------------------------------------------------------------------
    # Fire-and-forget helpers
    # ------------------------------------------------------------------

    def dispatch(self, coro: Coroutine[Any, Any, TrackOutcome]) -> asyncio.Task:
        """Schedule a tracking coroutine without awaiting it.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all dispatched tracking tasks to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def initialize_session(self, user_id: Optional[str] = None, user_role: Optional[str] = None) -> None:
        """Start the anonymous dwell clock on app load (no-op for signed-in users)."""
        try:
            await self.policy.initialize_session(user_id, user_role)
        except Exception as e:
            logger.error(f'Failed to initialize analytics session: {e}', exc_info=True)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    async def _emit(self, record: AnalyticsEventRecord, event_key: str) -> TrackOutcome:
        payload = record.to_payload()
        event_name = record.event_name.value
        backend = getattr(self.event_store, 'backend', 'unknown')

        logger.debug(
            'Inserting analytics event',
            event_name=event_name,
            session_id=record.session_id,
            event_key=event_key,
        )

        start_time = time.perf_counter()
        try:
            await self.event_store.insert(payload)
        except Exception as e:
            record_insert(backend, time.perf_counter() - start_time, success=False)
            logger.error(
                f'Failed to insert analytics event: {e}',
                event_name=event_name,
                session_id=record.session_id,
                event_key=event_key,
                backend=backend,
            )
            return TrackOutcome.FAILED

        record_insert(backend, time.perf_counter() - start_time, success=True)
        logger.debug(
            'Analytics event inserted',
            event_name=event_name,
            session_id=record.session_id,
            event_key=event_key,
        )
        return TrackOutcome.EMITTED

    # ------------------------------------------------------------------
    # Tracking calls
    # ------------------------------------------------------------------

    @best_effort(EventName.PAGE_VIEW)
    async def track_page_view(
        self,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
        page_path: Optional[str] = None,
    ) -> TrackOutcome:
        """Track a page view on page_path (or the current location)."""
        path = page_path if page_path is not None else self.location()

        if not self.policy.should_track_page_view(path, user_id):
            return TrackOutcome.SKIPPED_PATH
        if not await self.policy.should_track_by_role(user_id, user_role):
            return TrackOutcome.SKIPPED_ROLE

        event_key = path
        if not self.dedup.claim(EventCategory.PAGE_VIEW, event_key):
            return TrackOutcome.SKIPPED_DUPLICATE

        record = AnalyticsEventRecord(
            session_id=await self.identity_store.get_or_create_session_id(),
            user_id=user_id,
            event_name=EventName.PAGE_VIEW,
            page_path=path,
            landing_path=await self.identity_store.get_or_create_landing_path(path),
            metadata=build_metadata(user_role),
        )
        return await self._emit(record, event_key)

    @best_effort(EventName.SEARCH_PERFORMED)
    async def track_search_performed(
        self,
        query: str,
        scope: Union[SearchScope, str],
        result_count: Optional[int] = None,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
        page_path: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        destination_id: Optional[str] = None,
        product_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> TrackOutcome:
        """Track a submitted search. Blank queries are ignored."""
        normalized_query = (query or '').strip()
        if not normalized_query:
            return TrackOutcome.SKIPPED_EMPTY_QUERY

        scope = SearchScope(scope)
        if not await self.policy.should_track_by_role(user_id, user_role):
            return TrackOutcome.SKIPPED_ROLE

        event_key = build_event_key(
            scope,
            normalized_query.lower(),
            result_count,
            page_path,
            destination_id,
            product_id,
        )
        if not self.dedup.claim(EventCategory.SEARCH, event_key):
            return TrackOutcome.SKIPPED_DUPLICATE

        content_id = destination_id or product_id or None
        if destination_id:
            content_type = ContentType.DESTINATION.value
        elif product_id:
            content_type = ContentType.PRODUCT.value
        else:
            content_type = None

        has_count = isinstance(result_count, int) and not isinstance(result_count, bool)

        record = AnalyticsEventRecord(
            session_id=await self.identity_store.get_or_create_session_id(),
            user_id=user_id,
            event_name=EventName.SEARCH_PERFORMED,
            page_path=page_path,
            search_query=normalized_query,
            search_scope=scope,
            search_result_count=result_count if has_count else None,
            filters=filters or {},
            metadata=build_metadata(user_role, {
                'owner_id': owner_id,
                'content_id': content_id,
                'content_type': content_type,
            }),
            destination_id=destination_id if is_uuid(destination_id) else None,
            product_id=product_id if is_uuid(product_id) else None,
        )
        return await self._emit(record, event_key)

    @best_effort(EventName.FILTER_USED)
    async def track_filter_usage(
        self,
        scope: Union[SearchScope, str],
        filter_name: str,
        filter_value: Union[str, int, float, bool, None] = None,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
        page_path: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> TrackOutcome:
        """Track a filter change."""
        scope = SearchScope(scope)
        if not await self.policy.should_track_by_role(user_id, user_role):
            return TrackOutcome.SKIPPED_ROLE

        event_key = build_event_key(scope, filter_name, filter_value, page_path)
        if not self.dedup.claim(EventCategory.FILTER, event_key):
            return TrackOutcome.SKIPPED_DUPLICATE

        record = AnalyticsEventRecord(
            session_id=await self.identity_store.get_or_create_session_id(),
            user_id=user_id,
            event_name=EventName.FILTER_USED,
            page_path=page_path,
            search_scope=scope,
            filters={
                'filter_name': filter_name,
                'filter_value': filter_value,
                **(filters or {}),
            },
            metadata=build_metadata(user_role),
        )
        return await self._emit(record, event_key)

    @best_effort(EventName.PAGE_VIEW)
    async def track_content_view(
        self,
        content_type: Union[ContentType, str],
        content_id: str,
        owner_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
        page_path: Optional[str] = None,
    ) -> TrackOutcome:
        """Track a destination/product view, usually opened in a modal."""
        if is_owner_view(owner_id, user_id):
            return TrackOutcome.SKIPPED_OWNER_VIEW

        content_type = ContentType(content_type)
        if not await self.policy.should_track_by_role(user_id, user_role):
            return TrackOutcome.SKIPPED_ROLE

        event_key = build_event_key(content_type, content_id, user_id or ANONYMOUS_KEY)
        if not self.dedup.claim(EventCategory.CONTENT, event_key):
            return TrackOutcome.SKIPPED_DUPLICATE

        normalized_id = content_id if is_uuid(content_id) else None

        record = AnalyticsEventRecord(
            session_id=await self.identity_store.get_or_create_session_id(),
            user_id=user_id,
            event_name=EventName.PAGE_VIEW,
            page_path=page_path if page_path is not None else f'modal:{content_type.value}:{content_id}',
            landing_path=page_path,
            destination_id=normalized_id if content_type == ContentType.DESTINATION else None,
            product_id=normalized_id if content_type == ContentType.PRODUCT else None,
            metadata=build_metadata(user_role, {
                'content_type': content_type.value,
                'content_id': content_id,
                'owner_id': owner_id,
            }),
        )
        return await self._emit(record, event_key)

    @best_effort(EventName.PAGE_VIEW)
    async def track_profile_view(
        self,
        profile_id: str,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
    ) -> TrackOutcome:
        """Track a view of someone else's profile page."""
        if is_owner_view(profile_id, user_id):
            return TrackOutcome.SKIPPED_OWNER_VIEW
        if not await self.policy.should_track_by_role(user_id, user_role):
            return TrackOutcome.SKIPPED_ROLE

        event_key = build_event_key(ContentType.PROFILE, profile_id, user_id or ANONYMOUS_KEY)
        if not self.dedup.claim(EventCategory.CONTENT, event_key):
            return TrackOutcome.SKIPPED_DUPLICATE

        path = f'/profile/{profile_id}'
        record = AnalyticsEventRecord(
            session_id=await self.identity_store.get_or_create_session_id(),
            user_id=user_id,
            event_name=EventName.PAGE_VIEW,
            page_path=path,
            landing_path=path,
            metadata=build_metadata(user_role, {
                'content_type': ContentType.PROFILE.value,
                'content_id': profile_id,
                'owner_id': profile_id,
            }),
        )
        return await self._emit(record, event_key)
