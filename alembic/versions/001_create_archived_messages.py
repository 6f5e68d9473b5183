"""Create archived_messages document table

Revision ID: 001_create_archived_messages
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_archived_messages'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade: Create archived_messages with its lookup indexes"""
    op.create_table(
        'archived_messages',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('archive_type', sa.String(32), nullable=False),
        sa.Column('channel_id', sa.String(32), nullable=False),
        sa.Column('guild_id', sa.String(32), nullable=True),
        sa.Column('document', sa.JSON, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_archived_messages_archive_type', 'archived_messages', ['archive_type'])
    op.create_index('ix_archived_messages_channel_id', 'archived_messages', ['channel_id'])
    op.create_index('ix_archived_messages_guild_id', 'archived_messages', ['guild_id'])


def downgrade() -> None:
    """Downgrade: Drop archived_messages"""
    op.drop_index('ix_archived_messages_guild_id', table_name='archived_messages')
    op.drop_index('ix_archived_messages_channel_id', table_name='archived_messages')
    op.drop_index('ix_archived_messages_archive_type', table_name='archived_messages')
    op.drop_table('archived_messages')
