"""Engagement workflow and background jobs

Revision ID: 001_engagement_workflow
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_engagement_workflow'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_JOB_PREDICATE = sa.text("status IN ('pending', 'running')")


def upgrade():
    # Background jobs
    op.create_table('jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.String(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('scope', sa.String(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('result_count', sa.Integer(), nullable=False),
        sa.Column('skipped_count', sa.Integer(), nullable=False),
        sa.Column('parameters', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_jobs_id'), 'jobs', ['id'], unique=False)
    op.create_index(op.f('ix_jobs_job_id'), 'jobs', ['job_id'], unique=True)
    op.create_index('uq_jobs_active_kind_scope', 'jobs', ['kind', 'scope'], unique=True,
                    postgresql_where=ACTIVE_JOB_PREDICATE, sqlite_where=ACTIVE_JOB_PREDICATE)

    # Engagement items
    op.create_table('engagement_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope', sa.String(), nullable=False),
        sa.Column('source_post_id', sa.String(), nullable=False),
        sa.Column('community', sa.String(), nullable=False),
        sa.Column('source_url', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('author', sa.String(), nullable=True),
        sa.Column('matched_keyword', sa.String(), nullable=True),
        sa.Column('source_score', sa.Integer(), nullable=True),
        sa.Column('source_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('relevance_score', sa.Float(), nullable=True),
        sa.Column('is_recommended', sa.Boolean(), nullable=False),
        sa.Column('analysis', sa.JSON(), nullable=True),
        sa.Column('low_relevance', sa.Boolean(), nullable=False),
        sa.Column('generated_draft', sa.Text(), nullable=True),
        sa.Column('edited_draft', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('assigned_account_id', sa.String(), nullable=True),
        sa.Column('reviewer_id', sa.String(), nullable=True),
        sa.Column('reviewer_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('publish_attempted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('published_reference_id', sa.String(), nullable=True),
        sa.Column('publish_error', sa.Text(), nullable=True),
        sa.Column('published_score', sa.Integer(), nullable=True),
        sa.Column('reply_count', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('discovered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_post_id')
    )
    op.create_index(op.f('ix_engagement_items_id'), 'engagement_items', ['id'], unique=False)
    op.create_index(op.f('ix_engagement_items_scope'), 'engagement_items', ['scope'], unique=False)
    op.create_index(op.f('ix_engagement_items_community'), 'engagement_items', ['community'], unique=False)
    op.create_index('ix_engagement_items_scope_status', 'engagement_items', ['scope', 'status'], unique=False)
    op.create_index('ix_engagement_items_discovered', 'engagement_items', ['discovered_at', 'id'], unique=False)

    # Channel discovery results
    op.create_table('discovered_channels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope', sa.String(), nullable=False),
        sa.Column('channel_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('custom_url', sa.String(), nullable=True),
        sa.Column('thumbnail_url', sa.String(), nullable=True),
        sa.Column('subscriber_count', sa.BigInteger(), nullable=True),
        sa.Column('video_count', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.BigInteger(), nullable=True),
        sa.Column('discovered_keyword', sa.String(), nullable=True),
        sa.Column('discovered_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('channel_id')
    )
    op.create_index(op.f('ix_discovered_channels_id'), 'discovered_channels', ['id'], unique=False)
    op.create_index(op.f('ix_discovered_channels_scope'), 'discovered_channels', ['scope'], unique=False)

    # Search analytics imports
    op.create_table('search_analytics_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope', sa.String(), nullable=False),
        sa.Column('query', sa.String(), nullable=False),
        sa.Column('page', sa.String(), nullable=False),
        sa.Column('country', sa.String(), nullable=False),
        sa.Column('device', sa.String(), nullable=False),
        sa.Column('data_date', sa.Date(), nullable=False),
        sa.Column('clicks', sa.Integer(), nullable=True),
        sa.Column('impressions', sa.Integer(), nullable=True),
        sa.Column('ctr', sa.Float(), nullable=True),
        sa.Column('position', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('scope', 'query', 'page', 'country', 'device', 'data_date',
                            name='uq_search_analytics_row')
    )
    op.create_index(op.f('ix_search_analytics_records_id'), 'search_analytics_records', ['id'], unique=False)
    op.create_index(op.f('ix_search_analytics_records_scope'), 'search_analytics_records', ['scope'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_search_analytics_records_scope'), table_name='search_analytics_records')
    op.drop_index(op.f('ix_search_analytics_records_id'), table_name='search_analytics_records')
    op.drop_table('search_analytics_records')
    op.drop_index(op.f('ix_discovered_channels_scope'), table_name='discovered_channels')
    op.drop_index(op.f('ix_discovered_channels_id'), table_name='discovered_channels')
    op.drop_table('discovered_channels')
    op.drop_index('ix_engagement_items_discovered', table_name='engagement_items')
    op.drop_index('ix_engagement_items_scope_status', table_name='engagement_items')
    op.drop_index(op.f('ix_engagement_items_community'), table_name='engagement_items')
    op.drop_index(op.f('ix_engagement_items_scope'), table_name='engagement_items')
    op.drop_index(op.f('ix_engagement_items_id'), table_name='engagement_items')
    op.drop_table('engagement_items')
    op.drop_index('uq_jobs_active_kind_scope', table_name='jobs')
    op.drop_index(op.f('ix_jobs_job_id'), table_name='jobs')
    op.drop_index(op.f('ix_jobs_id'), table_name='jobs')
    op.drop_table('jobs')
