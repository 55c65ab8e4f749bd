"""Create email pipeline tables

Revision ID: 001
Revises:
Create Date: 2025-11-03 12:00:00.000000

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
    # Tables may already exist (created by Base.metadata.create_all or the product app)
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.String(length=255), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('first_name', sa.String(length=255), nullable=True),
            sa.Column('last_name', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('email', name='uq_users_email')
        )
        op.create_index('ix_users_id', 'users', ['id'])
        op.create_index('ix_users_email', 'users', ['email'])

    if 'email_preferences' not in existing_tables:
        op.create_table(
            'email_preferences',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('product_updates', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('milestone_emails', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('weekly_progress_report', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('ai_analysis_notifs', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('feature_updates', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('marketing_emails', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('unsubscribed_all', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('unsubscribed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', name='uq_email_preferences_user_id')
        )
        op.create_index('ix_email_preferences_id', 'email_preferences', ['id'])
        op.create_index('ix_email_preferences_user_id', 'email_preferences', ['user_id'])

    if 'email_logs' not in existing_tables:
        op.create_table(
            'email_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('message_id', sa.String(length=255), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=True),
            sa.Column('email_type', sa.String(length=100), nullable=False),
            sa.Column('to_email', sa.String(length=255), nullable=False),
            sa.Column('from_email', sa.String(length=255), nullable=False),
            sa.Column('subject', sa.String(length=500), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='QUEUED'),
            sa.Column('resend_id', sa.String(length=255), nullable=True),
            sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('bounced_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('message_id', name='uq_email_logs_message_id')
        )
        op.create_index('ix_email_logs_id', 'email_logs', ['id'])
        op.create_index('ix_email_logs_message_id', 'email_logs', ['message_id'])
        op.create_index('ix_email_logs_user_id', 'email_logs', ['user_id'])
        op.create_index('ix_email_logs_email_type', 'email_logs', ['email_type'])
        op.create_index('ix_email_logs_status', 'email_logs', ['status'])
        op.create_index('ix_email_logs_resend_id', 'email_logs', ['resend_id'])

    if 'email_events' not in existing_tables:
        op.create_table(
            'email_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('email_type', sa.String(length=100), nullable=True),
            sa.Column('event_data', sa.JSON(), nullable=False),
            sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_email_events_id', 'email_events', ['id'])
        op.create_index('ix_email_events_user_id', 'email_events', ['user_id'])
        op.create_index('ix_email_events_event_type', 'email_events', ['event_type'])

    if 'email_templates' not in existing_tables:
        op.create_table(
            'email_templates',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('component_ref', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('name', name='uq_email_templates_name')
        )
        op.create_index('ix_email_templates_id', 'email_templates', ['id'])
        op.create_index('ix_email_templates_name', 'email_templates', ['name'])

    if 'delivery_webhook_events' not in existing_tables:
        op.create_table(
            'delivery_webhook_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('provider_event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('email_id', sa.String(length=255), nullable=True),
            sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('provider_event_id', name='uq_delivery_webhook_events_provider_event_id')
        )
        op.create_index('ix_delivery_webhook_events_id', 'delivery_webhook_events', ['id'])
        op.create_index('ix_delivery_webhook_events_provider_event_id', 'delivery_webhook_events', ['provider_event_id'])
        op.create_index('ix_delivery_webhook_events_event_type', 'delivery_webhook_events', ['event_type'])
        op.create_index('ix_delivery_webhook_events_email_id', 'delivery_webhook_events', ['email_id'])


def downgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    # users belongs to the product; leave it in place
    for table in ('delivery_webhook_events', 'email_templates', 'email_events', 'email_logs', 'email_preferences'):
        if table in existing_tables:
            op.drop_table(table)
