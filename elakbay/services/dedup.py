"""Single-slot de-duplication per event category.

Each category remembers only the most recently emitted key, so only
immediate repeats are suppressed: A, B, A emits three events.
"""

from enum import Enum
from typing import Any, Optional


class EventCategory(str, Enum):
    """De-duplication slots. Content and profile views share one slot."""
    PAGE_VIEW = "page_view"
    SEARCH = "search"
    FILTER = "filter"
    CONTENT = "content"


def _key_part(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def build_event_key(*parts: Any) -> str:
    """Join distinguishing fields with '|', missing values as empty strings."""
    return '|'.join(_key_part(part) for part in parts)


class DeduplicationSlots:
    """Last-emitted key per category, for the lifetime of one tracker context."""

    def __init__(self) -> None:
        self._last_keys: dict[EventCategory, Optional[str]] = {
            category: None for category in EventCategory
        }

    def is_duplicate(self, category: EventCategory, key: str) -> bool:
        return self._last_keys[category] == key

    def claim(self, category: EventCategory, key: str) -> bool:
        """Mark key as the latest for category.

        Returns False (and changes nothing) if key repeats the stored key.
        """
        if self.is_duplicate(category, key):
            return False
        self._last_keys[category] = key
        return True
