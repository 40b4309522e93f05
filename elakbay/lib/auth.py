"""Authentication utilities for FastAPI endpoints.

The analytics service does not manage login state. An upstream auth proxy
forwards the acting user's id and role in headers; the middleware copies
them to request.state and these dependencies read them from there.

These headers are trusted as-is. The proxy must strip any X-Forwarded-User-Id
and X-Forwarded-User-Role sent by the client before setting its own, and the
service must only be reachable through that proxy; otherwise a direct caller
can claim the admin role.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from elakbay.lib.config import DEFAULT_TRACKED_ROLE
from elakbay.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)

USER_ID_HEADER = 'X-Forwarded-User-Id'
USER_ROLE_HEADER = 'X-Forwarded-User-Role'
CLIENT_ID_HEADER = 'X-Analytics-Client-Id'

ADMIN_ROLE = 'admin'


@dataclass
class UserContext:
  """Acting party for a request.

  Attributes:
      user_id: Authenticated user id, None for anonymous visitors
      user_role: Role of the user ('tourist', 'municipality', 'admin', ...)
      client_id: Browser identifier used to scope durable client storage
  """

  user_id: Optional[str] = None
  user_role: Optional[str] = None
  client_id: Optional[str] = None

  @property
  def is_authenticated(self) -> bool:
    return bool(self.user_id)


def extract_user_context(request: Request) -> UserContext:
  """Read user and client identity from request headers (empty values count as missing)."""
  return UserContext(
    user_id=request.headers.get(USER_ID_HEADER) or None,
    user_role=request.headers.get(USER_ROLE_HEADER) or None,
    client_id=request.headers.get(CLIENT_ID_HEADER) or None,
  )


async def get_user_context(request: Request) -> UserContext:
  """Return the user context set by middleware, anonymous if absent.

  Never raises: tracking endpoints accept anonymous visitors.
  """
  context = getattr(request.state, 'user_context', None)
  if context is None:
    context = extract_user_context(request)
  return context


async def get_authenticated_user(request: Request) -> UserContext:
  """Require an authenticated user.

  Raises:
      HTTPException: 401 if no user id was forwarded
  """
  context = await get_user_context(request)

  if not context.is_authenticated:
    raise HTTPException(
      status_code=401,
      detail={
        'error_code': 'AUTH_MISSING',
        'message': 'User authentication required.',
      },
    )

  return context


async def get_dashboard_user(request: Request) -> UserContext:
  """Require a content owner or operator (any authenticated non-visitor role).

  Raises:
      HTTPException: 401 if unauthenticated, 403 for visitor accounts
  """
  context = await get_authenticated_user(request)
  config = getattr(request.app.state, 'analytics_config', None)
  tracked_role = config.tracked_role if config is not None else DEFAULT_TRACKED_ROLE

  if not context.user_role or context.user_role == tracked_role:
    logger.warning(
      'Dashboard access denied',
      user_id=context.user_id,
      user_role=context.user_role,
    )
    raise HTTPException(
      status_code=403,
      detail={
        'error_code': 'FORBIDDEN',
        'message': 'Analytics dashboard is available to content owners only.',
      },
    )

  return context
