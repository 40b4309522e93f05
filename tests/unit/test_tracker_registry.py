"""Unit tests for TrackerRegistry: per-browser tracker contexts."""

import pytest

from elakbay.lib.config import AnalyticsConfig
from elakbay.lib.storage import in_memory_storage_factory
from elakbay.models.events import TrackOutcome
from elakbay.services.tracker_registry import TrackerRegistry


class TestTrackerRegistry:

  def test_same_client_gets_same_tracker(self, registry):
    assert registry.get('browser-1') is registry.get('browser-1')

  def test_clients_are_isolated(self, registry):
    first = registry.get('browser-1')
    second = registry.get('browser-2')

    assert first is not second
    assert first.dedup is not second.dedup
    assert first.identity_store.store is not second.identity_store.store

  def test_missing_client_id_gets_throwaway_tracker(self, registry):
    tracker = registry.get(None)

    assert tracker is not registry.get(None)
    assert tracker.identity_store.has_storage is False
    assert registry.stats['clients'] == 0

  def test_least_recently_used_is_evicted(self, event_store, clock, id_generator):
    registry = TrackerRegistry(
      AnalyticsConfig(event_store='memory', max_clients=2),
      event_store,
      clock=clock,
      id_generator=id_generator,
    )
    a = registry.get('a')
    registry.get('b')
    registry.get('a')
    registry.get('c')

    assert registry.get('a') is a
    assert registry.stats['clients'] == 2
    assert registry.stats['evictions'] == 1

  def test_trackers_use_registry_config(self, event_store):
    registry = TrackerRegistry(
      AnalyticsConfig(event_store='memory', tracked_role='visitor', storage_prefix='test'),
      event_store,
    )

    tracker = registry.get('browser-1')

    assert tracker.policy.tracked_role == 'visitor'
    assert tracker.identity_store.session_key == 'test-session-id'

  @pytest.mark.asyncio
  async def test_drain_covers_every_client(self, registry, event_store):
    for client_id, path in (('browser-1', '/a'), ('browser-2', '/b')):
      tracker = registry.get(client_id)
      tracker.dispatch(tracker.track_page_view(user_id=client_id, user_role='tourist', page_path=path))

    assert registry.stats['pending'] == 2
    await registry.drain()

    assert registry.stats['pending'] == 0
    assert sorted(r['page_path'] for r in event_store.records) == ['/a', '/b']

  @pytest.mark.asyncio
  async def test_dedup_is_per_client(self, registry, event_store):
    outcomes = []
    for client_id in ('browser-1', 'browser-2', 'browser-1'):
      tracker = registry.get(client_id)
      outcomes.append(await tracker.track_page_view(user_id='u1', user_role='tourist', page_path='/a'))

    assert outcomes == [TrackOutcome.EMITTED, TrackOutcome.EMITTED, TrackOutcome.SKIPPED_DUPLICATE]

  @pytest.mark.asyncio
  async def test_identity_survives_eviction(self, event_store, clock, id_generator):
    registry = TrackerRegistry(
      AnalyticsConfig(event_store='memory', max_clients=1),
      event_store,
      storage_factory=in_memory_storage_factory(),
      clock=clock,
      id_generator=id_generator,
    )
    first = registry.get('browser-1')
    session_id = await first.identity_store.get_or_create_session_id()
    await first.identity_store.get_or_create_landing_path('/destinations')

    registry.get('browser-2')
    returning = registry.get('browser-1')

    assert returning is not first
    assert registry.stats['evictions'] == 2
    assert await returning.identity_store.get_or_create_session_id() == session_id
    assert await returning.identity_store.get_or_create_landing_path('/products') == '/destinations'
    assert id_generator.count == 1
