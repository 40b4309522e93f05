"""Analytics summary service for the owner dashboard.

Reads stored analytics events for a time range and aggregates them in
Python: totals per event name, unique sessions and users, top searches,
most viewed content and a time series for charting.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from elakbay.models.analytics_event import AnalyticsEvent
from elakbay.models.events import EventName

logger = logging.getLogger(__name__)

TIME_RANGES = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    '90d': timedelta(days=90),
}


class AnalyticsSummaryService:
    """Service for dashboard aggregates over analytics events."""

    def __init__(self, db: Session, top_n: int = 10):
        """Initialize summary service.

        Args:
            db: SQLAlchemy database session
            top_n: Number of entries in top searches / top content lists
        """
        self.db = db
        self.top_n = top_n

    def get_summary(self, time_range: str = '24h', owner_id: Optional[str] = None) -> Dict:
        """Retrieve dashboard aggregates.

        Args:
            time_range: Time range ("24h", "7d", "30d", "90d")
            owner_id: Restrict to events about this owner's content (None = all)

        Returns:
            Dictionary with totals, top lists and time-series data points
        """
        start_time, end_time = self._parse_time_range(time_range)
        events = self._query_events(start_time, end_time)

        if owner_id is not None:
            events = [e for e in events if (e.event_metadata or {}).get('owner_id') == owner_id]

        if not events:
            return self._empty_response(time_range, start_time, end_time)

        counts = Counter(e.event_name for e in events)

        return {
            'time_range': time_range,
            'start_time': start_time.isoformat(),
            'end_time': end_time.isoformat(),
            'metrics': {
                'total_events': len(events),
                'page_views': counts.get(EventName.PAGE_VIEW.value, 0),
                'searches': counts.get(EventName.SEARCH_PERFORMED.value, 0),
                'filters_used': counts.get(EventName.FILTER_USED.value, 0),
                'unique_sessions': len({e.session_id for e in events}),
                'unique_users': len({e.user_id for e in events if e.user_id}),
            },
            'top_searches': self._top_searches(events),
            'top_content': self._top_content(events),
            'data_points': self._time_series(events, time_range),
        }

    def _parse_time_range(self, time_range: str) -> tuple[datetime, datetime]:
        """Parse time range string to start/end datetimes (default 24 hours)."""
        end_time = datetime.utcnow()
        return end_time - TIME_RANGES.get(time_range, TIME_RANGES['24h']), end_time

    def _query_events(self, start_time: datetime, end_time: datetime) -> List[AnalyticsEvent]:
        try:
            return self.db.query(AnalyticsEvent).filter(
                and_(
                    AnalyticsEvent.created_at >= start_time,
                    AnalyticsEvent.created_at <= end_time
                )
            ).all()
        except Exception as e:
            # Dashboard degrades to empty numbers when the database is unreachable
            logger.warning(f'Failed to query analytics events: {e}')
            return []

    def _top_searches(self, events: List[AnalyticsEvent]) -> List[Dict]:
        queries = Counter(
            e.search_query.strip().lower()
            for e in events
            if e.event_name == EventName.SEARCH_PERFORMED.value and e.search_query
        )
        return [
            {'query': query, 'count': count}
            for query, count in queries.most_common(self.top_n)
        ]

    def _top_content(self, events: List[AnalyticsEvent]) -> List[Dict]:
        views = Counter()
        for e in events:
            if e.event_name != EventName.PAGE_VIEW.value:
                continue
            metadata = e.event_metadata or {}
            content_id = metadata.get('content_id')
            if content_id:
                views[(metadata.get('content_type'), content_id)] += 1

        return [
            {'content_type': content_type, 'content_id': content_id, 'views': count}
            for (content_type, content_id), count in views.most_common(self.top_n)
        ]

    def _time_series(self, events: List[AnalyticsEvent], time_range: str) -> List[Dict]:
        """Bucket events hourly for 24h, daily otherwise."""
        hourly = time_range not in ('7d', '30d', '90d')
        buckets: Dict[datetime, Dict] = {}

        for e in events:
            bucket = e.created_at.replace(minute=0, second=0, microsecond=0)
            if not hourly:
                bucket = bucket.replace(hour=0)
            point = buckets.setdefault(bucket, {'events': 0, 'sessions': set()})
            point['events'] += 1
            point['sessions'].add(e.session_id)

        return [
            {
                'timestamp': bucket.isoformat(),
                'total_events': point['events'],
                'unique_sessions': len(point['sessions']),
            }
            for bucket, point in sorted(buckets.items())
        ]

    def _empty_response(self, time_range: str, start_time: datetime, end_time: datetime) -> Dict:
        return {
            'time_range': time_range,
            'start_time': start_time.isoformat(),
            'end_time': end_time.isoformat(),
            'metrics': {
                'total_events': 0,
                'page_views': 0,
                'searches': 0,
                'filters_used': 0,
                'unique_sessions': 0,
                'unique_users': 0,
            },
            'top_searches': [],
            'top_content': [],
            'data_points': [],
        }
