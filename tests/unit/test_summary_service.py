"""Unit tests for AnalyticsSummaryService aggregates."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from elakbay.models.analytics_event import AnalyticsEvent
from elakbay.services.analytics_summary_service import AnalyticsSummaryService


def add_event(session, event_name='page_view', hours_ago=1, session_id='s1', user_id=None, **fields):
  session.add(AnalyticsEvent(
    event_name=event_name,
    session_id=session_id,
    user_id=user_id,
    created_at=datetime.utcnow() - timedelta(hours=hours_ago),
    **fields,
  ))


@pytest.fixture
def seeded(db_session):
  add_event(db_session, page_path='/destinations', session_id='s1', user_id='u1',
            event_metadata={'user_role': 'tourist'})
  add_event(db_session, page_path='modal:destination:d1', session_id='s1', user_id='u1',
            event_metadata={'user_role': 'tourist', 'content_type': 'destination', 'content_id': 'd1', 'owner_id': 'owner-1'})
  add_event(db_session, page_path='modal:destination:d1', session_id='s2',
            event_metadata={'user_role': None, 'content_type': 'destination', 'content_id': 'd1', 'owner_id': 'owner-1'})
  add_event(db_session, page_path='modal:product:p1', session_id='s2',
            event_metadata={'user_role': None, 'content_type': 'product', 'content_id': 'p1', 'owner_id': 'owner-2'})
  add_event(db_session, 'search_performed', search_query='Vigan', search_scope='destinations', session_id='s1',
            user_id='u1', event_metadata={'user_role': 'tourist', 'owner_id': 'owner-1'})
  add_event(db_session, 'search_performed', search_query=' vigan ', search_scope='destinations', session_id='s3',
            event_metadata={'user_role': None, 'owner_id': None})
  add_event(db_session, 'filter_used', search_scope='products', session_id='s3',
            filters={'filter_name': 'category', 'filter_value': 'food'}, event_metadata={'user_role': None})
  # Outside the 24h window
  add_event(db_session, page_path='/old', hours_ago=48, session_id='s9', event_metadata={'user_role': None})
  db_session.commit()
  return db_session


class TestAnalyticsSummary:

  def test_totals_for_all_events(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h')

    assert summary['time_range'] == '24h'
    assert summary['metrics'] == {
      'total_events': 7,
      'page_views': 4,
      'searches': 2,
      'filters_used': 1,
      'unique_sessions': 3,
      'unique_users': 1,
    }

  def test_wider_range_includes_older_events(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('7d')

    assert summary['metrics']['total_events'] == 8
    assert summary['metrics']['unique_sessions'] == 4

  def test_top_searches_are_normalized(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h')

    assert summary['top_searches'] == [{'query': 'vigan', 'count': 2}]

  def test_top_content_counts_views(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h')

    assert summary['top_content'][0] == {'content_type': 'destination', 'content_id': 'd1', 'views': 2}
    assert {'content_type': 'product', 'content_id': 'p1', 'views': 1} in summary['top_content']

  def test_owner_sees_only_their_content(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h', owner_id='owner-1')

    assert summary['metrics']['total_events'] == 3
    assert summary['metrics']['page_views'] == 2
    assert summary['metrics']['searches'] == 1
    assert summary['top_content'] == [{'content_type': 'destination', 'content_id': 'd1', 'views': 2}]

  def test_owner_without_events_gets_empty_summary(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h', owner_id='nobody')

    assert summary['metrics']['total_events'] == 0
    assert summary['top_searches'] == []
    assert summary['data_points'] == []

  def test_hourly_data_points_for_24h(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('24h')

    points = summary['data_points']
    assert sum(p['total_events'] for p in points) == 7
    for point in points:
      assert datetime.fromisoformat(point['timestamp']).minute == 0

  def test_daily_data_points_for_longer_ranges(self, seeded):
    summary = AnalyticsSummaryService(seeded).get_summary('30d')

    for point in summary['data_points']:
      timestamp = datetime.fromisoformat(point['timestamp'])
      assert (timestamp.hour, timestamp.minute) == (0, 0)
    assert sum(p['total_events'] for p in summary['data_points']) == 8

  def test_top_n_limits_lists(self, db_session):
    for i in range(5):
      add_event(db_session, 'search_performed', search_query=f'q{i}', session_id=f's{i}', event_metadata={})
    db_session.commit()

    summary = AnalyticsSummaryService(db_session, top_n=3).get_summary('24h')

    assert len(summary['top_searches']) == 3

  def test_empty_database(self, db_session):
    summary = AnalyticsSummaryService(db_session).get_summary('90d')

    assert summary['metrics']['total_events'] == 0
    assert summary['time_range'] == '90d'

  def test_query_failure_degrades_to_empty(self, caplog):
    db = MagicMock()
    db.query.side_effect = RuntimeError('connection refused')

    summary = AnalyticsSummaryService(db).get_summary('24h')

    assert summary['metrics']['total_events'] == 0
    assert any('Failed to query analytics events' in r.message for r in caplog.records)
