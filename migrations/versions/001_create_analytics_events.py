"""Create analytics_events table

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
  op.create_table(
    'analytics_events',
    sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('session_id', sa.String(length=255), nullable=False),
    sa.Column('user_id', sa.String(length=255), nullable=True),
    sa.Column('event_name', sa.String(length=50), nullable=False),
    sa.Column('page_path', sa.Text(), nullable=True),
    sa.Column('landing_path', sa.Text(), nullable=True),
    sa.Column('search_query', sa.Text(), nullable=True),
    sa.Column('search_scope', sa.String(length=50), nullable=True),
    sa.Column('search_result_count', sa.Integer(), nullable=True),
    sa.Column('filters', sa.JSON(), nullable=True),
    sa.Column('destination_id', sa.String(length=36), nullable=True),
    sa.Column('product_id', sa.String(length=36), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.CheckConstraint(
      "event_name IN ('page_view', 'search_performed', 'filter_used')",
      name='ck_analytics_events_event_name',
    ),
  )

  op.create_index('ix_analytics_events_created_at', 'analytics_events', ['created_at'])
  op.create_index('ix_analytics_events_event_name', 'analytics_events', ['event_name'])
  op.create_index('ix_analytics_events_session_id', 'analytics_events', ['session_id'])
  op.create_index('ix_analytics_events_user_id', 'analytics_events', ['user_id'])


def downgrade():
  op.drop_index('ix_analytics_events_user_id', table_name='analytics_events')
  op.drop_index('ix_analytics_events_session_id', table_name='analytics_events')
  op.drop_index('ix_analytics_events_event_name', table_name='analytics_events')
  op.drop_index('ix_analytics_events_created_at', table_name='analytics_events')
  op.drop_table('analytics_events')
