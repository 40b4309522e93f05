"""Shared test fixtures and utilities for all tests.

Provides deterministic fakes for the clock, id generator and event store,
a tracker wired from them, an in-memory SQLite database, and a TestClient
whose tracker registry uses the same fakes.
"""

import sys
from pathlib import Path

# Ensure the project root is first in sys.path
project_root = str(Path(__file__).parent.parent.absolute())
if project_root not in sys.path:
  sys.path.insert(0, project_root)

import pytest
from fastapi.testclient import TestClient

from elakbay.lib.config import AnalyticsConfig
from elakbay.lib.database import create_database_engine, create_tables, get_session_factory
from elakbay.lib.storage import InMemoryKeyValueStore, in_memory_storage_factory
from elakbay.services.analytics_service import AnalyticsTracker
from elakbay.services.identity_store import IdentityStore
from elakbay.services.tracker_registry import TrackerRegistry

# 2026-10-19T00:00:00Z
START_MS = 1_792_368_000_000


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
  """Clock whose time only moves when told to."""

  def __init__(self, now_ms: int = START_MS):
    self.current = now_ms

  def now_ms(self) -> int:
    return self.current

  def advance(self, ms: int) -> None:
    self.current += ms


class SequentialIds:
  """Predictable session ids: session-1, session-2, ..."""

  def __init__(self):
    self.count = 0

  def new_id(self) -> str:
    self.count += 1
    return f'session-{self.count}'


class RecordingEventStore:
  """Event store that records inserts and can be told to fail or to block."""

  backend = 'memory'

  def __init__(self):
    self.records = []
    self.fail_with = None
    self.release = None

  async def insert(self, record):
    if self.release is not None:
      await self.release.wait()
    if self.fail_with is not None:
      raise self.fail_with
    self.records.append(record)

  async def close(self):
    pass

  def names(self):
    return [r['event_name'] for r in self.records]


class FailingKeyValueStore:
  """Storage that is present but every call raises (quota, private mode)."""

  def get_item(self, key):
    raise OSError('storage unavailable')

  def set_item(self, key, value):
    raise OSError('storage unavailable')


# ============================================================================
# Pipeline fixtures
# ============================================================================


@pytest.fixture
def clock():
  return FakeClock()


@pytest.fixture
def id_generator():
  return SequentialIds()


@pytest.fixture
def kv_store():
  return InMemoryKeyValueStore()


@pytest.fixture
def event_store():
  return RecordingEventStore()


@pytest.fixture
def identity_store(kv_store, clock, id_generator):
  return IdentityStore(store=kv_store, clock=clock, id_generator=id_generator)


@pytest.fixture
def config():
  return AnalyticsConfig(event_store='memory')


@pytest.fixture
def tracker(config, event_store, kv_store, clock, id_generator):
  """Tracker for one browser with durable storage and a fake clock."""
  return AnalyticsTracker.from_config(
    config,
    event_store,
    store=kv_store,
    clock=clock,
    id_generator=id_generator,
    location=lambda: '/destinations?municipality=vigan',
  )


@pytest.fixture
def anonymous_ready(tracker, kv_store, clock):
  """Anonymous visitor first seen 10 seconds ago."""
  kv_store.set_item(tracker.identity_store.anon_first_seen_key, str(clock.now_ms()))
  clock.advance(10_000)
  return tracker


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def db_engine():
  engine = create_database_engine('sqlite://')
  create_tables(engine)
  yield engine
  engine.dispose()


@pytest.fixture
def session_factory(db_engine):
  return get_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
  session = session_factory()
  yield session
  session.close()


# ============================================================================
# FastAPI Application Fixtures
# ============================================================================


@pytest.fixture
def registry(config, event_store, clock, id_generator):
  return TrackerRegistry(
    config,
    event_store,
    storage_factory=in_memory_storage_factory(),
    clock=clock,
    id_generator=id_generator,
  )


@pytest.fixture
def client(registry, config):
  """TestClient with the fake registry installed; lifespan runs around the test."""
  from elakbay.app import app

  app.state.analytics_config = config
  app.state.tracker_registry = registry

  with TestClient(app) as test_client:
    test_client.drain = lambda: test_client.portal.call(registry.drain)
    yield test_client

  app.state.tracker_registry = None
  app.state.analytics_config = None
  app.dependency_overrides.clear()


@pytest.fixture
def tourist_headers():
  return {
    'X-Forwarded-User-Id': 'tourist-1',
    'X-Forwarded-User-Role': 'tourist',
    'X-Analytics-Client-Id': 'browser-1',
  }

