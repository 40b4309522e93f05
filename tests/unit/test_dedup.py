"""Unit tests for single-slot de-duplication and event keys."""

from elakbay.models.events import SearchScope
from elakbay.services.dedup import DeduplicationSlots, EventCategory, build_event_key


class TestBuildEventKey:

  def test_joins_parts_with_pipe(self):
    assert build_event_key('products', 'ube jam', 3, '/products') == 'products|ube jam|3|/products'

  def test_missing_values_are_empty(self):
    assert build_event_key('global', 'vigan', None, None) == 'global|vigan||'

  def test_enums_use_their_value(self):
    assert build_event_key(SearchScope.DESTINATIONS, 'beach') == 'destinations|beach'

  def test_booleans_are_lowercase(self):
    assert build_event_key('products', 'open_now', True) == 'products|open_now|true'
    assert build_event_key('products', 'open_now', False) == 'products|open_now|false'

  def test_zero_is_not_empty(self):
    assert build_event_key('products', 'q', 0) != build_event_key('products', 'q', None)


class TestDeduplicationSlots:

  def test_first_claim_succeeds(self):
    slots = DeduplicationSlots()

    assert slots.claim(EventCategory.PAGE_VIEW, '/a') is True
    assert slots.is_duplicate(EventCategory.PAGE_VIEW, '/a') is True

  def test_immediate_repeat_is_rejected(self):
    slots = DeduplicationSlots()
    slots.claim(EventCategory.SEARCH, 'k')

    assert slots.claim(EventCategory.SEARCH, 'k') is False
    assert slots.is_duplicate(EventCategory.SEARCH, 'k') is True

  def test_only_immediate_repeats_are_suppressed(self):
    """A, B, A claims three times: each slot holds one key."""
    slots = DeduplicationSlots()

    results = [slots.claim(EventCategory.PAGE_VIEW, key) for key in ('/a', '/b', '/a')]

    assert results == [True, True, True]

  def test_categories_are_independent(self):
    slots = DeduplicationSlots()
    slots.claim(EventCategory.PAGE_VIEW, 'same')

    assert slots.claim(EventCategory.SEARCH, 'same') is True
    assert slots.claim(EventCategory.FILTER, 'same') is True
    assert slots.claim(EventCategory.CONTENT, 'same') is True

