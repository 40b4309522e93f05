"""Unit tests for AnalyticsConfig environment loading."""

import pytest
from pydantic import ValidationError

from elakbay.lib.config import AnalyticsConfig, load_env_files

ENV_VARS = (
  'ANALYTICS_STORAGE_PREFIX',
  'ANALYTICS_ANON_MIN_MS',
  'ANALYTICS_TRACKED_ROLE',
  'ANALYTICS_EVENT_STORE',
  'ANALYTICS_EVENTS_TABLE',
  'SUPABASE_URL',
  'SUPABASE_ANON_KEY',
  'ANALYTICS_REST_TIMEOUT_SECONDS',
  'ANALYTICS_MAX_CLIENTS',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
  for name in ENV_VARS:
    monkeypatch.delenv(name, raising=False)


class TestAnalyticsConfig:

  def test_defaults(self):
    config = AnalyticsConfig.from_env()

    assert config.storage_prefix == 'elakbay-analytics'
    assert config.anonymous_min_dwell_ms == 10_000
    assert config.tracked_role == 'tourist'
    assert config.excluded_path_prefixes == ('/dashboard', '/admin')
    assert config.event_store == 'database'
    assert config.events_table == 'analytics_events'
    assert config.rest_url is None
    assert config.max_clients == 10_000

  def test_reads_environment(self, monkeypatch):
    monkeypatch.setenv('ANALYTICS_STORAGE_PREFIX', 'staging')
    monkeypatch.setenv('ANALYTICS_ANON_MIN_MS', '2500')
    monkeypatch.setenv('ANALYTICS_TRACKED_ROLE', 'visitor')
    monkeypatch.setenv('ANALYTICS_EVENT_STORE', 'REST')
    monkeypatch.setenv('SUPABASE_URL', 'https://project.supabase.co')
    monkeypatch.setenv('SUPABASE_ANON_KEY', 'anon-key')
    monkeypatch.setenv('ANALYTICS_REST_TIMEOUT_SECONDS', '2.5')
    monkeypatch.setenv('ANALYTICS_MAX_CLIENTS', '50')

    config = AnalyticsConfig.from_env()

    assert config.storage_prefix == 'staging'
    assert config.anonymous_min_dwell_ms == 2500
    assert config.tracked_role == 'visitor'
    assert config.event_store == 'rest'
    assert config.rest_url == 'https://project.supabase.co'
    assert config.rest_api_key == 'anon-key'
    assert config.rest_timeout_seconds == 2.5
    assert config.max_clients == 50

  def test_invalid_numbers_fall_back_to_defaults(self, monkeypatch, caplog):
    monkeypatch.setenv('ANALYTICS_ANON_MIN_MS', 'ten seconds')
    monkeypatch.setenv('ANALYTICS_MAX_CLIENTS', 'lots')

    config = AnalyticsConfig.from_env()

    assert config.anonymous_min_dwell_ms == 10_000
    assert config.max_clients == 10_000
    assert any('ANALYTICS_ANON_MIN_MS' in r.message for r in caplog.records)

  def test_out_of_range_numbers_are_clamped(self, monkeypatch):
    monkeypatch.setenv('ANALYTICS_ANON_MIN_MS', '-5')
    monkeypatch.setenv('ANALYTICS_MAX_CLIENTS', '0')

    config = AnalyticsConfig.from_env()

    assert config.anonymous_min_dwell_ms == 0
    assert config.max_clients == 1

  def test_unknown_event_store_falls_back_to_database(self, monkeypatch):
    monkeypatch.setenv('ANALYTICS_EVENT_STORE', 'kafka')

    assert AnalyticsConfig.from_env().event_store == 'database'

  def test_direct_construction_validates(self):
    with pytest.raises(ValidationError):
      AnalyticsConfig(event_store='kafka')
    with pytest.raises(ValidationError):
      AnalyticsConfig(anonymous_min_dwell_ms=-1)


def test_load_env_files_does_not_override(tmp_path, monkeypatch):
  env_file = tmp_path / '.env'
  env_file.write_text('ANALYTICS_TRACKED_ROLE=visitor\nANALYTICS_STORAGE_PREFIX=from-file\n')
  monkeypatch.setenv('ANALYTICS_TRACKED_ROLE', 'tourist')

  load_env_files(str(env_file), str(tmp_path / 'missing.env'))

  config = AnalyticsConfig.from_env()
  assert config.tracked_role == 'tourist'
  assert config.storage_prefix == 'from-file'
