"""Eligibility policy: whether an interaction should be tracked at all.

Operators and content owners are excluded so they do not skew visitor
analytics, and anonymous visits shorter than the dwell threshold are not
counted.
"""

import re
from typing import Iterable, Optional

from elakbay.lib.config import (
    DEFAULT_ANON_MIN_MS,
    DEFAULT_EXCLUDED_PATH_PREFIXES,
    DEFAULT_TRACKED_ROLE,
)
from elakbay.lib.structured_logger import StructuredLogger
from elakbay.services.identity_store import IdentityStore

logger = StructuredLogger(__name__)

PROFILE_PATH_PATTERN = re.compile(r'^/profile/([^/]+)$')


def clean_path(path: str) -> str:
    """Strip query string and fragment from a path."""
    return path.split('?', 1)[0].split('#', 1)[0]


def should_track_page_view(
    path: str,
    user_id: Optional[str] = None,
    excluded_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PATH_PREFIXES,
) -> bool:
    """Return False for dashboard/admin paths and for a user viewing their own profile."""
    path_only = clean_path(path)

    if any(path_only.startswith(prefix) for prefix in excluded_prefixes):
        return False

    match = PROFILE_PATH_PATTERN.match(path_only)
    if match and user_id and match.group(1) == user_id:
        return False

    return True


def is_owner_view(owner_id: Optional[str], user_id: Optional[str]) -> bool:
    """True iff both ids are present and equal."""
    return bool(owner_id and user_id and owner_id == user_id)


class EligibilityPolicy:
    """Role, path and dwell-time gates bound to one browser's identity store."""

    def __init__(
        self,
        identity_store: IdentityStore,
        tracked_role: str = DEFAULT_TRACKED_ROLE,
        anonymous_min_dwell_ms: int = DEFAULT_ANON_MIN_MS,
        excluded_path_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PATH_PREFIXES,
    ):
        self.identity_store = identity_store
        self.clock = identity_store.clock
        self.tracked_role = tracked_role
        self.anonymous_min_dwell_ms = anonymous_min_dwell_ms
        self.excluded_path_prefixes = tuple(excluded_path_prefixes)

    def should_track_page_view(self, path: str, user_id: Optional[str] = None) -> bool:
        return should_track_page_view(path, user_id, self.excluded_path_prefixes)

    async def should_track_anonymous(self) -> bool:
        """Dwell gate for anonymous visitors.

        The first call records the first-seen time and returns False; later
        calls return True once the dwell threshold has elapsed. Without
        durable storage anonymous visitors are never tracked.
        """
        if not self.identity_store.has_storage:
            return False

        first_seen = await self.identity_store.get_anonymous_first_seen()
        if not first_seen:
            await self.identity_store.ensure_anonymous_first_seen()
            return False

        return self.clock.now_ms() - first_seen >= self.anonymous_min_dwell_ms

    async def should_track_by_role(self, user_id: Optional[str], user_role: Optional[str]) -> bool:
        """Authenticated users are tracked iff their role is the tracked role;
        anonymous visitors fall through to the dwell gate."""
        if not user_id:
            result = await self.should_track_anonymous()
            logger.debug(f'Anonymous visitor dwell gate: {result}')
            return result

        result = user_role == self.tracked_role
        logger.debug(f'Role gate for {user_role!r}: {result}', user_id=user_id)
        return result

    async def initialize_session(self, user_id: Optional[str], user_role: Optional[str]) -> None:
        """Start the anonymous dwell clock early for visitors who may be tracked."""
        if user_id:
            return
        if user_role and user_role != self.tracked_role:
            return
        await self.identity_store.ensure_anonymous_first_seen()
