"""Analytics pipeline services."""

from elakbay.services.analytics_service import AnalyticsTracker
from elakbay.services.dedup import DeduplicationSlots, EventCategory
from elakbay.services.eligibility import EligibilityPolicy, is_owner_view, should_track_page_view
from elakbay.services.identity_store import IdentityStore

__all__ = [
    'AnalyticsTracker',
    'DeduplicationSlots',
    'EventCategory',
    'EligibilityPolicy',
    'IdentityStore',
    'is_owner_view',
    'should_track_page_view',
]
