"""FastAPI application for eLakbay analytics."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from elakbay.lib.auth import extract_user_context
from elakbay.lib.config import AnalyticsConfig, load_env_files
from elakbay.lib.database import get_session_factory, is_database_configured, reset_engine
from elakbay.lib.metrics import record_request_duration
from elakbay.lib.storage import DatabaseKeyValueStore, in_memory_storage_factory
from elakbay.lib.structured_logger import (
  generate_correlation_id,
  log_event,
  log_request,
  set_correlation_id,
)
from elakbay.routers import router
from elakbay.services.event_store import create_event_store
from elakbay.services.tracker_registry import TrackerRegistry

load_env_files('.env', '.env.local')

# Paths that are not worth a request log line or latency sample
QUIET_PATHS = ('/health', '/api/health', '/metrics')


def build_registry(config: AnalyticsConfig) -> TrackerRegistry:
  """Wire the event store and per-client storage selected by configuration.

  Client storage lives in the database when one is configured, otherwise in
  process memory (one store per client id, kept after its tracker is evicted).
  """
  event_store = create_event_store(config)

  if is_database_configured():
    session_factory = get_session_factory()
    storage_factory = lambda client_id: DatabaseKeyValueStore(session_factory, client_id)  # noqa: E731
  else:
    storage_factory = in_memory_storage_factory()

  log_event(
    'analytics.registry_created',
    context={
      'event_store': event_store.backend,
      'client_storage': 'database' if is_database_configured() else 'memory',
      'max_clients': config.max_clients,
    },
  )
  return TrackerRegistry(config, event_store, storage_factory=storage_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
  """Build the tracker registry on startup; flush pending tracking writes on shutdown."""
  config = getattr(app.state, 'analytics_config', None) or AnalyticsConfig.from_env()
  app.state.analytics_config = config
  if getattr(app.state, 'tracker_registry', None) is None:
    app.state.tracker_registry = build_registry(config)

  yield

  registry = app.state.tracker_registry
  await registry.drain()
  close = getattr(registry.event_store, 'close', None)
  if close is not None:
    await close()
  reset_engine()


app = FastAPI(
  title='eLakbay Analytics API',
  description='Visitor analytics tracking and owner dashboard aggregates',
  version='0.1.0',
  lifespan=lifespan,
)

app.add_middleware(
  CORSMiddleware,
  allow_origins=[
    'http://localhost:5173',
    'http://127.0.0.1:5173',
    'http://localhost:3000',
    'http://127.0.0.1:3000',
  ],
  allow_credentials=True,
  allow_methods=['*'],
  allow_headers=['*'],
)


@app.middleware('http')
async def add_request_context(request: Request, call_next):
  """Inject correlation ID and user context into the request.

  - Extracts X-Correlation-ID header or generates new UUID
  - Sets correlation ID in context for logging (tracking tasks inherit it)
  - Copies forwarded user id/role and analytics client id to request.state
  - Adds X-Correlation-ID to response headers
  - Records request duration and logs the request
  """
  correlation_id = request.headers.get('X-Correlation-ID')
  if correlation_id:
    set_correlation_id(correlation_id)
  else:
    correlation_id = generate_correlation_id()
  request.state.correlation_id = correlation_id

  user_context = extract_user_context(request)
  request.state.user_context = user_context
  request.state.user_id = user_context.user_id

  start_time = time.time()

  response = await call_next(request)

  duration_seconds = time.time() - start_time
  response.headers['X-Correlation-ID'] = correlation_id

  if request.url.path not in QUIET_PATHS:
    record_request_duration(
      endpoint=request.url.path,
      method=request.method,
      status=response.status_code,
      duration_seconds=duration_seconds,
    )
    log_request(
      endpoint=request.url.path,
      method=request.method,
      status_code=response.status_code,
      duration_ms=duration_seconds * 1000,
      user_id=user_context.user_id,
    )

  return response


@app.get('/health')
async def health_root():
  """Health check endpoint at root level (for load balancers)."""
  return {'status': 'healthy'}


@app.get('/api/health')
async def health_api():
  """Health check endpoint under /api prefix."""
  return {'status': 'healthy'}


@app.get('/metrics')
async def metrics_root():
  """Prometheus metrics endpoint (tracking outcomes, event store writes, request latency)."""
  return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(router)
