"""Initial schema - users, buddy profiles, matches, notifications, feedback

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

Portable DDL (PostgreSQL and SQLite). The partial unique index on
matches backs the one-pending-request-per-pair rule.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users & profiles
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('department', sa.String(100)),
        sa.Column('position', sa.String(100)),
        sa.Column('location', sa.String(100)),
        sa.Column('bio', sa.Text()),
        sa.Column('interests', sa.JSON(), nullable=False),
        sa.Column('languages', sa.JSON(), nullable=False),
        sa.Column('start_date', sa.Date()),
        sa.Column('timezone', sa.String(50)),
        *_timestamps(),
    )

    # ==========================================================================
    # Buddy profiles
    # ==========================================================================
    op.create_table(
        'buddy_profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('location', sa.String(100), nullable=False),
        sa.Column('unit', sa.String(100), nullable=False),
        sa.Column('tech_stack', sa.JSON(), nullable=False),
        sa.Column('interests', sa.JSON(), nullable=False),
        sa.Column('max_buddies', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('experience', sa.Text()),
        sa.Column('mentoring_style', sa.Text()),
        sa.Column('availability', sa.Text()),
        *_timestamps(),
        sa.CheckConstraint('max_buddies >= 1', name='ck_buddy_profiles_max_buddies_positive'),
    )
    op.create_index('idx_buddy_profiles_available', 'buddy_profiles', ['is_available'])

    # ==========================================================================
    # Matches
    # ==========================================================================
    op.create_table(
        'matches',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('sender_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('newcomer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('message', sa.Text()),
        sa.Column('response_message', sa.Text()),
        sa.Column('start_date', sa.DateTime()),
        sa.Column('end_date', sa.DateTime()),
        sa.Column('responded_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        *_timestamps(),
    )
    op.create_index(
        'uq_one_pending_match_per_pair',
        'matches',
        ['sender_id', 'receiver_id'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
        sqlite_where=sa.text("status = 'PENDING'"),
    )
    op.create_index('idx_matches_receiver_status', 'matches', ['receiver_id', 'status'])
    op.create_index('idx_matches_sender_status', 'matches', ['sender_id', 'status'])
    op.create_index('idx_matches_created', 'matches', ['created_at'])

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text()),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', sa.Uuid()),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'read_at', 'created_at'])

    # ==========================================================================
    # Feedback
    # ==========================================================================
    op.create_table(
        'feedback',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('match_id', sa.Uuid(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('helpfulness', sa.Integer()),
        sa.Column('communication', sa.Integer()),
        sa.Column('availability', sa.Integer()),
        sa.Column('comment', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_feedback_match_user'),
    )


def downgrade() -> None:
    op.drop_table('feedback')
    op.drop_index('idx_notif_user_unread', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_matches_created', table_name='matches')
    op.drop_index('idx_matches_sender_status', table_name='matches')
    op.drop_index('idx_matches_receiver_status', table_name='matches')
    op.drop_index('uq_one_pending_match_per_pair', table_name='matches')
    op.drop_table('matches')
    op.drop_index('idx_buddy_profiles_available', table_name='buddy_profiles')
    op.drop_table('buddy_profiles')
    op.drop_table('user_profiles')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')
