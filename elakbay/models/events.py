"""Analytics Event Pydantic Models

Normalized event record sent to the event store, plus the closed
enumerations shared by the tracker and the HTTP surface.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventName(str, Enum):
    """Event names accepted by the event store."""
    PAGE_VIEW = "page_view"
    SEARCH_PERFORMED = "search_performed"
    FILTER_USED = "filter_used"


class SearchScope(str, Enum):
    """Catalog a search or filter applies to."""
    PRODUCTS = "products"
    DESTINATIONS = "destinations"
    GLOBAL = "global"


class ContentType(str, Enum):
    """Kinds of content that can be viewed."""
    DESTINATION = "destination"
    PRODUCT = "product"
    PROFILE = "profile"


class TrackOutcome(str, Enum):
    """Result of a single tracking call."""
    EMITTED = "emitted"
    FAILED = "failed"
    SKIPPED_EMPTY_QUERY = "skipped_empty_query"
    SKIPPED_PATH = "skipped_path"
    SKIPPED_OWNER_VIEW = "skipped_owner_view"
    SKIPPED_ROLE = "skipped_role"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    ERROR = "error"


class AnalyticsEventRecord(BaseModel):
    """Flat analytics event as written to the event store.

    Attributes:
        session_id: Per-browser session identifier (never empty)
        user_id: Authenticated user, None for anonymous visitors
        event_name: One of EventName
        page_path: Path the event happened on (may be a synthetic modal path)
        landing_path: First path recorded for this browser
        search_query: Trimmed query, original case (search events)
        search_scope: SearchScope value (search and filter events)
        search_result_count: Number of results, None when unknown
        filters: Filter context (search and filter events)
        destination_id: Related destination when its id is a UUID
        product_id: Related product when its id is a UUID
        metadata: Always carries user_role plus event-specific fields
    """

    session_id: str = Field(..., min_length=1, description="Session identifier")
    user_id: Optional[str] = Field(default=None, description="Authenticated user id")
    event_name: EventName = Field(..., description="Event name")
    page_path: Optional[str] = Field(default=None, description="Page path")
    landing_path: Optional[str] = Field(default=None, description="Landing path")
    search_query: Optional[str] = None
    search_scope: Optional[SearchScope] = None
    search_result_count: Optional[int] = None
    filters: Optional[dict[str, Any]] = None
    destination_id: Optional[str] = None
    product_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, description="Open key-value context")

    def to_payload(self) -> dict[str, Any]:
        """Return the insert payload: explicitly set fields only, enums as strings."""
        return self.model_dump(mode='json', exclude_unset=True)
