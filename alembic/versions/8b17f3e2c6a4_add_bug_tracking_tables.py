"""add_bug_tracking_tables

Revision ID: 8b17f3e2c6a4
Revises: 5e2a9c41d7b0
Create Date: 2026-10-02 16:41:55.208817

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b17f3e2c6a4'
down_revision: Union[str, Sequence[str], None] = '5e2a9c41d7b0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - Add bug tracking tables."""
    op.create_table(
        'bug_metadata',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bug_id', sa.String(50), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('summary', sa.Text()),
        sa.Column('status', sa.String(50)),
        sa.Column('component', sa.String(200)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bug_id')
    )
    op.create_index('idx_bug_component', 'bug_metadata', ['component'])
    op.create_index('idx_bug_is_active', 'bug_metadata', ['is_active'])

    op.create_table(
        'bug_test_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bug_pk', sa.Integer(), nullable=False),
        sa.Column('test_name', sa.Text(), nullable=False),
        sa.Column('release', sa.String(50)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['bug_pk'], ['bug_metadata.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_mapping_bug', 'bug_test_mappings', ['bug_pk'])
    op.create_index('idx_mapping_release', 'bug_test_mappings', ['release'])

    op.create_table(
        'bug_sync_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('bugs_updated', sa.Integer(), server_default='0'),
        sa.Column('mappings_created', sa.Integer(), server_default='0'),
        sa.Column('error_message', sa.Text()),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_bug_sync_started', 'bug_sync_logs', ['started_at'])


def downgrade() -> None:
    """
    Downgrade schema - Remove bug tracking tables.

    WARNING: This will permanently delete all bug tracking data!
    Without mappings every failure is reported as unknown.
    """
    op.drop_index('idx_bug_sync_started', 'bug_sync_logs')
    op.drop_table('bug_sync_logs')

    op.drop_index('idx_mapping_release', 'bug_test_mappings')
    op.drop_index('idx_mapping_bug', 'bug_test_mappings')
    op.drop_table('bug_test_mappings')

    op.drop_index('idx_bug_is_active', 'bug_metadata')
    op.drop_index('idx_bug_component', 'bug_metadata')
    op.drop_table('bug_metadata')
