"""kiosk session core schema

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
        'subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('phone_number', sa.String(32), nullable=True),
        sa.Column('reviewer_id', sa.String(255), nullable=False),
        sa.Column('kiosk_id', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_subjects_kiosk_active', 'subjects', ['kiosk_id', 'is_active'])

    op.create_table(
        'kiosk_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id'), nullable=False),
        sa.Column('reviewer_id', sa.String(255), nullable=False),
        sa.Column('kiosk_id', sa.String(100), nullable=False),
        sa.Column('predicted_label', sa.String(20), nullable=False, server_default='none-yet'),
        sa.Column('approved_label', sa.String(20), nullable=False, server_default='none-yet'),
        sa.Column('status', sa.String(30), nullable=False, server_default='collecting_data'),
        sa.Column('command', sa.String(20), nullable=False, server_default='no-command'),
        sa.Column('command_executed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('execution_report', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_kiosk_sessions_subject_id', 'kiosk_sessions', ['subject_id'])
    op.create_index('ix_kiosk_sessions_reviewer_id', 'kiosk_sessions', ['reviewer_id'])
    op.create_index(
        'ix_kiosk_sessions_kiosk_status_created',
        'kiosk_sessions',
        ['kiosk_id', 'status', 'created_at'],
    )

    op.create_table(
        'session_readings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'session_id',
            sa.Uuid(),
            sa.ForeignKey('kiosk_sessions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('bpm', sa.Float(), nullable=True),
        sa.Column('spo2', sa.Float(), nullable=True),
        sa.Column('temperature', sa.Float(), nullable=True),
    )
    op.create_index('ix_session_readings_session_id', 'session_readings', ['session_id'])

    op.create_table(
        'kiosk_assignments',
        sa.Column('kiosk_id', sa.String(100), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id'), nullable=False),
        sa.Column(
            'session_id',
            sa.Uuid(),
            sa.ForeignKey('kiosk_sessions.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('kiosk_assignments')
    op.drop_index('ix_session_readings_session_id', table_name='session_readings')
    op.drop_table('session_readings')
    op.drop_index('ix_kiosk_sessions_kiosk_status_created', table_name='kiosk_sessions')
    op.drop_index('ix_kiosk_sessions_reviewer_id', table_name='kiosk_sessions')
    op.drop_index('ix_kiosk_sessions_subject_id', table_name='kiosk_sessions')
    op.drop_table('kiosk_sessions')
    op.drop_index('ix_subjects_kiosk_active', table_name='subjects')
    op.drop_table('subjects')
