"""create_job_run_tables

Revision ID: 5e2a9c41d7b0
Revises:
Create Date: 2026-09-28 10:12:07.514203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e2a9c41d7b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create releases, jobs, job variants, job runs and test outcomes."""
    op.create_table(
        'releases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_releases_name', 'releases', ['name'], unique=True)

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('release_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('dashboard_url', sa.String(2000)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['release_id'], ['releases.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_release_job', 'jobs', ['release_id', 'name'], unique=True)

    op.create_table(
        'job_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_job_variant', 'job_variants', ['job_id', 'name'], unique=True)
    op.create_index('idx_variant_name', 'job_variants', ['name'])

    op.create_table(
        'job_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(2000), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('succeeded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('failed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('test_failures', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_job_run_url', 'job_runs', ['job_id', 'url'], unique=True)
    op.create_index('idx_job_run_timestamp', 'job_runs', ['timestamp'])

    op.create_table(
        'test_outcomes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_run_id', sa.Integer(), nullable=False),
        sa.Column('test_name', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum('SUCCESS', 'FAILURE', 'FLAKE', name='teststatusenum'), nullable=False),
        sa.ForeignKeyConstraint(['job_run_id'], ['job_runs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_test_outcomes_status', 'test_outcomes', ['status'])
    op.create_index('idx_outcome_run_status', 'test_outcomes', ['job_run_id', 'status'])


def downgrade() -> None:
    """
    Drop all job run tables.

    WARNING: This permanently deletes all imported job runs.
    """
    op.drop_index('idx_outcome_run_status', 'test_outcomes')
    op.drop_index('ix_test_outcomes_status', 'test_outcomes')
    op.drop_table('test_outcomes')

    op.drop_index('idx_job_run_timestamp', 'job_runs')
    op.drop_index('idx_job_run_url', 'job_runs')
    op.drop_table('job_runs')

    op.drop_index('idx_variant_name', 'job_variants')
    op.drop_index('idx_job_variant', 'job_variants')
    op.drop_table('job_variants')

    op.drop_index('idx_release_job', 'jobs')
    op.drop_table('jobs')

    op.drop_index('ix_releases_name', 'releases')
    op.drop_table('releases')
