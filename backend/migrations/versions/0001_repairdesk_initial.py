"""initial repair desk schema

Revision ID: 0001_repairdesk_initial
Revises: 
Create Date: 2025-10-02
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_repairdesk_initial'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='Staff'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('locale', sa.String(length=8), nullable=False, server_default='it'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('tickets',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('ticket_number', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='intake'),
        sa.Column('priority', sa.String(length=8), nullable=False, server_default='low'),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('customer_email', sa.String(length=200), nullable=False),
        sa.Column('customer_phone', sa.String(length=40)),
        sa.Column('device_type', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2)),
        sa.Column('purchase_date', sa.Date()),
        sa.Column('order_id', sa.String(length=100)),
        sa.Column('password', sa.String(length=200)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('assigned_to', sa.String(length=200)),
        sa.Column('assigned_to_email', sa.String(length=200)),
    )
    # Unique: concurrent creators that compute the same number must collide here
    op.create_index('ix_tickets_ticket_number', 'tickets', ['ticket_number'], unique=True)
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_index('ix_tickets_created_at', 'tickets', ['created_at'])

    op.create_table('ticket_attachments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('ticket_id', sa.String(length=36), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_type', sa.String(length=8), nullable=False),
        sa.Column('storage_key', sa.String(length=255)),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_ticket_attachments_ticket_id', 'ticket_attachments', ['ticket_id'])

    op.create_table('settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_settings_key', 'settings', ['key'], unique=True)

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('settings')
    op.drop_table('ticket_attachments')
    op.drop_table('tickets')
    op.drop_table('users')
