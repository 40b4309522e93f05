"""Analytics API endpoints.

Tracking endpoints are the call sites of the pipeline: they accept an
interaction, schedule it on the caller's tracker context and answer 202
right away. Tracking never fails the request; an invalid body is the only
error (422).

The summary endpoint serves the owner dashboard and requires a content
owner or operator role.
"""

from typing import Any, Dict, Generator, Optional, Union
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from elakbay.lib.auth import ADMIN_ROLE, UserContext, get_dashboard_user, get_user_context
from elakbay.lib.database import get_db_session, is_database_configured
from elakbay.lib.structured_logger import StructuredLogger
from elakbay.models.events import ContentType, SearchScope
from elakbay.services.analytics_service import AnalyticsTracker
from elakbay.services.analytics_summary_service import AnalyticsSummaryService
from elakbay.services.tracker_registry import TrackerRegistry

logger = StructuredLogger(__name__)

router = APIRouter(prefix='/api/v1/analytics', tags=['Analytics'])

ACCEPTED = {'status': 'accepted'}


# Pydantic models for request validation


class PageViewRequest(BaseModel):
  """Page view; page_path defaults to the Referer path."""

  page_path: Optional[str] = Field(None, max_length=2048, description='Path including query string')


class SearchRequest(BaseModel):
  """Submitted search."""

  query: str = Field(..., max_length=500, description='Search text as typed')
  scope: SearchScope = Field(..., description='Catalog searched')
  result_count: Optional[int] = Field(None, ge=0, description='Number of results shown')
  page_path: Optional[str] = Field(None, max_length=2048)
  filters: Optional[Dict[str, Any]] = Field(None, description='Active filter context')
  destination_id: Optional[str] = Field(None, max_length=255)
  product_id: Optional[str] = Field(None, max_length=255)
  owner_id: Optional[str] = Field(None, max_length=255)


class FilterRequest(BaseModel):
  """Filter change."""

  scope: SearchScope = Field(..., description='Catalog filtered')
  filter_name: str = Field(..., min_length=1, max_length=255)
  filter_value: Union[bool, int, float, str, None] = Field(None, description='Selected value')
  page_path: Optional[str] = Field(None, max_length=2048)
  filters: Optional[Dict[str, Any]] = Field(None, description='Extra filter context')


class ContentViewRequest(BaseModel):
  """Destination/product view."""

  content_type: ContentType = Field(..., description='Kind of content viewed')
  content_id: str = Field(..., min_length=1, max_length=255)
  owner_id: Optional[str] = Field(None, max_length=255)
  page_path: Optional[str] = Field(None, max_length=2048)


class ProfileViewRequest(BaseModel):
  """Profile page view."""

  profile_id: str = Field(..., min_length=1, max_length=255)


class AcceptedResponse(BaseModel):
  status: str = Field(..., description='Always "accepted"')


# Dependencies


def get_registry(request: Request) -> TrackerRegistry:
  return request.app.state.tracker_registry


def referer_path(request: Request) -> str:
  """Current location of the browser: path and query of the Referer header."""
  referer = request.headers.get('referer')
  if not referer:
    return '/'
  parts = urlsplit(referer)
  path = parts.path or '/'
  return f'{path}?{parts.query}' if parts.query else path


def get_tracker(
  user: UserContext = Depends(get_user_context),
  registry: TrackerRegistry = Depends(get_registry),
) -> AnalyticsTracker:
  return registry.get(user.client_id)


# Tracking endpoints


@router.post('/session', status_code=202, response_model=AcceptedResponse)
async def initialize_session(
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Start the anonymous dwell clock when the app loads."""
  await tracker.initialize_session(user_id=user.user_id, user_role=user.user_role)
  return ACCEPTED


@router.post('/page-views', status_code=202, response_model=AcceptedResponse)
async def track_page_view(
  request: Request,
  body: PageViewRequest,
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Record a page view (fire-and-forget)."""
  page_path = body.page_path if body.page_path is not None else referer_path(request)
  tracker.dispatch(
    tracker.track_page_view(user_id=user.user_id, user_role=user.user_role, page_path=page_path)
  )
  return ACCEPTED


@router.post('/searches', status_code=202, response_model=AcceptedResponse)
async def track_search(
  body: SearchRequest,
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Record a submitted search (fire-and-forget)."""
  tracker.dispatch(
    tracker.track_search_performed(
      query=body.query,
      scope=body.scope,
      result_count=body.result_count,
      user_id=user.user_id,
      user_role=user.user_role,
      page_path=body.page_path,
      filters=body.filters,
      destination_id=body.destination_id,
      product_id=body.product_id,
      owner_id=body.owner_id,
    )
  )
  return ACCEPTED


@router.post('/filters', status_code=202, response_model=AcceptedResponse)
async def track_filter(
  body: FilterRequest,
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Record a filter change (fire-and-forget)."""
  tracker.dispatch(
    tracker.track_filter_usage(
      scope=body.scope,
      filter_name=body.filter_name,
      filter_value=body.filter_value,
      user_id=user.user_id,
      user_role=user.user_role,
      page_path=body.page_path,
      filters=body.filters,
    )
  )
  return ACCEPTED


@router.post('/content-views', status_code=202, response_model=AcceptedResponse)
async def track_content_view(
  body: ContentViewRequest,
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Record a destination or product view (fire-and-forget)."""
  tracker.dispatch(
    tracker.track_content_view(
      content_type=body.content_type,
      content_id=body.content_id,
      owner_id=body.owner_id,
      user_id=user.user_id,
      user_role=user.user_role,
      page_path=body.page_path,
    )
  )
  return ACCEPTED


@router.post('/profile-views', status_code=202, response_model=AcceptedResponse)
async def track_profile_view(
  body: ProfileViewRequest,
  user: UserContext = Depends(get_user_context),
  tracker: AnalyticsTracker = Depends(get_tracker),
):
  """Record a profile view (fire-and-forget)."""
  tracker.dispatch(
    tracker.track_profile_view(
      profile_id=body.profile_id,
      user_id=user.user_id,
      user_role=user.user_role,
    )
  )
  return ACCEPTED


# Dashboard


def get_summary_db() -> Generator[Session, None, None]:
  """Database session for the dashboard, 503 when no database is configured."""
  if not is_database_configured():
    raise HTTPException(
      status_code=503,
      detail={
        'error_code': 'DATABASE_UNAVAILABLE',
        'message': 'Analytics summary unavailable: database not configured',
      },
    )
  yield from get_db_session()


@router.get('/summary')
async def get_summary(
  user: UserContext = Depends(get_dashboard_user),
  time_range: str = Query('24h', pattern='^(24h|7d|30d|90d)$'),
  db: Session = Depends(get_summary_db),
):
  """Get dashboard aggregates (content owners and operators only).

  Admins see every event; other owner roles see events about their own
  destinations, products and profile.

  Args:
      user: Dashboard user (from dependency)
      time_range: Time range ("24h", "7d", "30d", "90d")
      db: Database session

  Returns:
      Dictionary with analytics aggregates
  """
  owner_id = None if user.user_role == ADMIN_ROLE else user.user_id

  logger.info(
    f'Analytics summary requested (time_range={time_range})',
    user_id=user.user_id,
    user_role=user.user_role,
  )

  return AnalyticsSummaryService(db).get_summary(time_range, owner_id=owner_id)
