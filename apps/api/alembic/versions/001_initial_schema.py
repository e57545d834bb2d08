"""initial schema: users, groups, memberships, logs, tags, check-ins, attendance, comments

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'app_user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('role', sa.Text(), nullable=False, server_default='athlete'),
        sa.Column('profile_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('legacy_group_id', sa.Uuid(), nullable=True),
        sa.UniqueConstraint('email', name='uq_app_user_email'),
        sa.CheckConstraint("role IN ('athlete', 'coach')", name='ck_app_user_role'),
    )

    op.create_table(
        'training_group',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('code', sa.String(16), nullable=False),
        sa.Column('coach_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['coach_id'], ['app_user.id']),
        sa.UniqueConstraint('code', name='uq_training_group_code'),
    )
    op.create_index('ix_training_group_coach_id', 'training_group', ['coach_id'])

    op.create_table(
        'group_membership',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['training_group.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'group_id', name='uq_group_membership_user_group'),
    )
    op.create_index('ix_group_membership_group_id', 'group_membership', ['group_id'])

    op.create_table(
        'log_entry',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('emoji', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_group', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id']),
    )
    op.create_index('ix_log_entry_user_id', 'log_entry', ['user_id'])
    op.create_index('ix_log_entry_timestamp', 'log_entry', ['timestamp'])

    op.create_table(
        'log_entry_tag',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('log_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['log_entry.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('log_id', 'name', name='uq_log_entry_tag_log_name'),
    )
    op.create_index('ix_log_entry_tag_name', 'log_entry_tag', ['name'])

    op.create_table(
        'tag',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id']),
        sa.UniqueConstraint('user_id', 'name', name='uq_tag_user_name'),
    )

    op.create_table(
        'checkin',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.Column('coach_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['training_group.id']),
        sa.ForeignKeyConstraint(['coach_id'], ['app_user.id']),
    )
    op.create_index('ix_checkin_group_id', 'checkin', ['group_id'])

    op.create_table(
        'attendance_record',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('checkin_id', sa.Uuid(), nullable=False),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.Column('coach_id', sa.Uuid(), nullable=False),
        sa.Column('session_date', sa.Date(), nullable=True),
        sa.Column('entries', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['checkin_id'], ['checkin.id']),
        sa.ForeignKeyConstraint(['group_id'], ['training_group.id']),
        sa.ForeignKeyConstraint(['coach_id'], ['app_user.id']),
        sa.UniqueConstraint('checkin_id', 'group_id', name='uq_attendance_record_checkin_group'),
    )

    op.create_table(
        'log_comment',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('log_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=False),
        sa.Column('author_name', sa.Text(), nullable=True),
        sa.Column('author_role', sa.Text(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['log_entry.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['app_user.id']),
    )
    op.create_index('ix_log_comment_log_id', 'log_comment', ['log_id'])


def downgrade() -> None:
    op.drop_index('ix_log_comment_log_id', table_name='log_comment')
    op.drop_table('log_comment')
    op.drop_table('attendance_record')
    op.drop_index('ix_checkin_group_id', table_name='checkin')
    op.drop_table('checkin')
    op.drop_table('tag')
    op.drop_index('ix_log_entry_tag_name', table_name='log_entry_tag')
    op.drop_table('log_entry_tag')
    op.drop_index('ix_log_entry_timestamp', table_name='log_entry')
    op.drop_index('ix_log_entry_user_id', table_name='log_entry')
    op.drop_table('log_entry')
    op.drop_index('ix_group_membership_group_id', table_name='group_membership')
    op.drop_table('group_membership')
    op.drop_index('ix_training_group_coach_id', table_name='training_group')
    op.drop_table('training_group')
    op.drop_table('app_user')
