"""initial_schema

Revision ID: 001
Revises:
Create Date: 2025-07-14 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIERS = ('free', 'coffee', 'professional', 'enterprise')


def upgrade() -> None:
    """Upgrade schema."""
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('tier', sa.Enum(*TIERS, name='usertier'), nullable=False),
        sa.Column('tier_expires_at', sa.DateTime(), nullable=True),
        sa.Column('subscription_status', sa.Enum('active', 'inactive', name='subscriptionstatus'), nullable=False),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('monthly_analyses_used', sa.Integer(), nullable=False),
        sa.Column('monthly_reset_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_stripe_customer_id'), 'users', ['stripe_customer_id'], unique=True)

    # Create analyses table
    op.create_table(
        'analyses',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('status', sa.Enum('pending', 'processing', 'completed', 'error', name='analysisstatus'), nullable=False),
        sa.Column('page_title', sa.String(512), nullable=True),
        sa.Column('page_description', sa.Text(), nullable=True),
        sa.Column('overall_score', sa.Integer(), nullable=True),
        sa.Column('error_details', sa.Text(), nullable=True),
        sa.Column('framework_version', sa.String(50), nullable=True),
        sa.Column('analysis_duration', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analyses_id'), 'analyses', ['id'], unique=False)
    op.create_index(op.f('ix_analyses_user_id'), 'analyses', ['user_id'], unique=False)
    op.create_index(op.f('ix_analyses_status'), 'analyses', ['status'], unique=False)
    op.create_index('idx_analyses_user_created', 'analyses', ['user_id', 'created_at'], unique=False)

    # Create analysis_progress table
    op.create_table(
        'analysis_progress',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('stage', sa.String(100), nullable=False),
        sa.Column('progress_percent', sa.Integer(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('educational_content', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'progress_percent >= 0 AND progress_percent <= 100', name='check_progress_percent_range'
        ),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analysis_progress_id'), 'analysis_progress', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_progress_analysis_id'), 'analysis_progress', ['analysis_id'], unique=False)
    op.create_index(
        'idx_analysis_progress_analysis_created', 'analysis_progress', ['analysis_id', 'created_at'], unique=False
    )

    # Create analysis_factors table
    op.create_table(
        'analysis_factors',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('factor_id', sa.String(20), nullable=False),
        sa.Column('factor_name', sa.String(255), nullable=False),
        sa.Column('pillar', sa.String(50), nullable=False),
        sa.Column('phase', sa.Enum('instant', 'background', name='factorphase'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('confidence', sa.Integer(), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('evidence', sa.JSON(), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('processing_time_ms', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analysis_factors_id'), 'analysis_factors', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_factors_analysis_id'), 'analysis_factors', ['analysis_id'], unique=False)

    # Create subscriptions table (usertier type already exists)
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('tier', postgresql.ENUM(*TIERS, name='usertier', create_type=False), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True),
        sa.Column('stripe_price_id', sa.String(255), nullable=True),
        sa.Column('status', sa.Enum('active', 'canceled', name='subscriptionstate'), nullable=False),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_status'), 'subscriptions', ['status'], unique=False)
    op.create_index(
        op.f('ix_subscriptions_stripe_subscription_id'), 'subscriptions', ['stripe_subscription_id'], unique=True
    )

    # Create usage_analytics table
    op.create_table(
        'usage_analytics',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('tier', sa.String(50), nullable=False),
        sa.Column('analysis_type', sa.String(50), nullable=False),
        sa.Column('processing_time_ms', sa.Integer(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_usage_analytics_id'), 'usage_analytics', ['id'], unique=False)
    op.create_index(op.f('ix_usage_analytics_user_id'), 'usage_analytics', ['user_id'], unique=False)
    op.create_index(op.f('ix_usage_analytics_analysis_id'), 'usage_analytics', ['analysis_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('usage_analytics')
    op.drop_table('subscriptions')
    op.drop_table('analysis_factors')
    op.drop_table('analysis_progress')
    op.drop_table('analyses')
    op.drop_table('users')
    for enum_name in ('subscriptionstate', 'factorphase', 'analysisstatus', 'subscriptionstatus', 'usertier'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
