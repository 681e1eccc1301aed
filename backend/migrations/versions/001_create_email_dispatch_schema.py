"""Create email dispatch schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Check which tables already exist (students/uploaded_files may predate this service)
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'students' not in existing_tables:
        op.create_table(
            'students',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('matric_number', sa.String(length=50), nullable=False),
            sa.Column('student_name', sa.String(length=255), nullable=False),
            sa.Column('date_of_birth', sa.Date(), nullable=True),
            sa.Column('parent_email_1', sa.String(length=255), nullable=True),
            sa.Column('parent_email_2', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_students_id', 'students', ['id'])
        op.create_index('ix_students_matric_number', 'students', ['matric_number'], unique=True)
        op.create_index('ix_students_date_of_birth', 'students', ['date_of_birth'])

    if 'uploaded_files' not in existing_tables:
        op.create_table(
            'uploaded_files',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=True),
            sa.Column('matric_number_raw', sa.String(length=100), nullable=True),
            sa.Column('matric_number_parsed', sa.String(length=50), nullable=True),
            sa.Column('original_file_name', sa.String(length=255), nullable=False),
            sa.Column('storage_path', sa.String(length=512), nullable=False),
            sa.Column('status', sa.String(length=50), nullable=False),
            sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_uploaded_files_id', 'uploaded_files', ['id'])
        op.create_index('ix_uploaded_files_student_id', 'uploaded_files', ['student_id'])
        op.create_index('ix_uploaded_files_matric_number_parsed', 'uploaded_files', ['matric_number_parsed'])
        op.create_index('ix_uploaded_files_storage_path', 'uploaded_files', ['storage_path'], unique=True)

    op.create_table(
        'email_queue',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=True),
        sa.Column('matric_number', sa.String(length=50), nullable=True),
        sa.Column('file_id', sa.Integer(), nullable=True),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('email_type', sa.String(length=20), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('queued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('prioritized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['file_id'], ['uploaded_files.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_email_queue_id', 'email_queue', ['id'])
    op.create_index('ix_email_queue_student_id', 'email_queue', ['student_id'])
    op.create_index('ix_email_queue_file_id', 'email_queue', ['file_id'])
    op.create_index('ix_email_queue_recipient_email', 'email_queue', ['recipient_email'])
    op.create_index('ix_email_queue_status_queued_at', 'email_queue', ['status', 'queued_at'])
    op.create_index('ix_email_queue_status_prioritized_at', 'email_queue', ['status', 'prioritized_at'])
    op.create_index('ix_email_queue_status_sent_at', 'email_queue', ['status', 'sent_at'])

    if 'system_settings' not in existing_tables:
        op.create_table(
            'system_settings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('daily_email_limit', sa.Integer(), nullable=False),
            sa.Column('email_batch_size', sa.Integer(), nullable=False),
            sa.Column('email_interval_minutes', sa.Integer(), nullable=False),
            sa.Column('cron_enabled', sa.Boolean(), nullable=False),
            sa.Column('sender_email', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_system_settings_id', 'system_settings', ['id'])
        op.create_index('ix_system_settings_updated_at', 'system_settings', ['updated_at'])

    op.create_table(
        'email_daily_counts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_email_daily_counts_id', 'email_daily_counts', ['id'])
    op.create_index('ix_email_daily_counts_date', 'email_daily_counts', ['date'], unique=True)

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('queue_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['queue_id'], ['email_queue.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_system_logs_id', 'system_logs', ['id'])
    op.create_index('ix_system_logs_type', 'system_logs', ['type'])
    op.create_index('ix_system_logs_queue_id', 'system_logs', ['queue_id'])
    op.create_index('ix_system_logs_created_at', 'system_logs', ['created_at'])

    op.create_table(
        'birthday_emails_sent',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('sent_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'sent_date', name='uq_birthday_emails_sent_student_date')
    )
    op.create_index('ix_birthday_emails_sent_id', 'birthday_emails_sent', ['id'])
    op.create_index('ix_birthday_emails_sent_student_id', 'birthday_emails_sent', ['student_id'])


def downgrade() -> None:
    # students, uploaded_files and system_settings may be shared with other tools; leave them
    op.drop_table('birthday_emails_sent')
    op.drop_table('system_logs')
    op.drop_table('email_daily_counts')
    op.drop_table('email_queue')
