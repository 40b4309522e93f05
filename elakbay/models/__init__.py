"""Models package for database entities and Pydantic models."""

from elakbay.models.analytics_event import AnalyticsEvent
from elakbay.models.client_storage_entry import ClientStorageEntry
from elakbay.models.events import (
    AnalyticsEventRecord,
    ContentType,
    EventName,
    SearchScope,
    TrackOutcome,
)

__all__ = [
    'AnalyticsEvent',
    'ClientStorageEntry',
    'AnalyticsEventRecord',
    'ContentType',
    'EventName',
    'SearchScope',
    'TrackOutcome',
]
