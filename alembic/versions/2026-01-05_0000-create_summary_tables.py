"""create_summary_tables

Revision ID: 4b1d2c9e7a10
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1d2c9e7a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the video summary schema.

    Tables:
    1. channels - YouTube channels (plus the shared "anonymous" channel)
    2. content - one row per video, keyed by the YouTube video id
    3. summaries - short / detailed summary per content
    4. tags - global tag vocabulary
    5. content_tags - content <-> tag links
    6. user_summary_history - append-only request log per user

    Uniqueness that the pipeline relies on for dedup:
    - content.unique_identifier
    - (summaries.content_id, summaries.summary_type)
    - tags.name
    """

    # ================================
    # channels
    # ================================
    op.create_table(
        'channels',
        sa.Column('id', sa.String(length=64), nullable=False, comment="YouTube channel id or 'anonymous'"),
        sa.Column('name', sa.String(length=255), nullable=False, comment='Channel display name'),
        sa.Column('url', sa.String(length=2048), nullable=True, comment='Channel URL'),
        sa.Column('subscriber_count', sa.Integer(), nullable=False, comment='Subscriber count reported by YouTube (0 when unknown)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_channels')),
    )

    # ================================
    # content
    # ================================
    op.create_table(
        'content',
        sa.Column('id', sa.String(length=64), nullable=False, comment='YouTube video id'),
        sa.Column('content_type', sa.Enum('video', name='contenttype', native_enum=False, length=16), nullable=False),
        sa.Column('unique_identifier', sa.String(length=64), nullable=False, comment='Dedup key, equal to id'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('url', sa.String(length=2048), nullable=False, comment='URL as submitted'),
        sa.Column('transcript', sa.Text(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), server_default='0', nullable=False, comment='Video length; 0 when unknown'),
        sa.Column('source_id', sa.String(length=64), nullable=False, comment='Owning channel'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.ForeignKeyConstraint(['source_id'], ['channels.id'], name=op.f('fk_content_source_id_channels')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content')),
        sa.UniqueConstraint('unique_identifier', name=op.f('uq_content_unique_identifier')),
    )
    op.create_index(op.f('ix_content_source_id'), 'content', ['source_id'])

    # ================================
    # summaries
    # ================================
    op.create_table(
        'summaries',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Generated UUID primary key'),
        sa.Column('content_id', sa.String(length=64), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('summary_type', sa.Enum('short', 'detailed', name='summarytype', native_enum=False, length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.ForeignKeyConstraint(['content_id'], ['content.id'], name=op.f('fk_summaries_content_id_content'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_summaries')),
        sa.UniqueConstraint('content_id', 'summary_type', name='uq_summaries_content_type'),
    )
    op.create_index(op.f('ix_summaries_content_id'), 'summaries', ['content_id'])

    # ================================
    # tags / content_tags
    # ================================
    op.create_table(
        'tags',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Generated UUID primary key'),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_tags')),
        sa.UniqueConstraint('name', name=op.f('uq_tags_name')),
    )

    op.create_table(
        'content_tags',
        sa.Column('content_id', sa.String(length=64), nullable=False),
        sa.Column('tag_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['content_id'], ['content.id'], name=op.f('fk_content_tags_content_id_content'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tag_id'], ['tags.id'], name=op.f('fk_content_tags_tag_id_tags'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('content_id', 'tag_id', name=op.f('pk_content_tags')),
    )

    # ================================
    # user_summary_history
    # ================================
    op.create_table(
        'user_summary_history',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Generated UUID primary key'),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('content_id', sa.String(length=64), nullable=False),
        sa.Column('summary_id', sa.Uuid(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['content_id'], ['content.id'], name=op.f('fk_user_summary_history_content_id_content'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['summary_id'], ['summaries.id'], name=op.f('fk_user_summary_history_summary_id_summaries'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_user_summary_history')),
    )
    op.create_index(op.f('ix_user_summary_history_user_id'), 'user_summary_history', ['user_id'])
    op.create_index(op.f('ix_user_summary_history_content_id'), 'user_summary_history', ['content_id'])
    op.create_index(op.f('ix_user_summary_history_generated_at'), 'user_summary_history', ['generated_at'])


def downgrade() -> None:
    """Drop the video summary schema (children before parents)."""
    op.drop_index(op.f('ix_user_summary_history_generated_at'), table_name='user_summary_history')
    op.drop_index(op.f('ix_user_summary_history_content_id'), table_name='user_summary_history')
    op.drop_index(op.f('ix_user_summary_history_user_id'), table_name='user_summary_history')
    op.drop_table('user_summary_history')

    op.drop_table('content_tags')
    op.drop_table('tags')

    op.drop_index(op.f('ix_summaries_content_id'), table_name='summaries')
    op.drop_table('summaries')

    op.drop_index(op.f('ix_content_source_id'), table_name='content')
    op.drop_table('content')

    op.drop_table('channels')
