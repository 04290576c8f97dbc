"""maintenance core tables

Revision ID: 0001_maintenance_core
Revises:
Create Date: 2025-09-20
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_maintenance_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='CUSTOMER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1'))
    )

    op.create_table('building_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('building_name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('building_code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('current_sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset_year', sa.Integer(), nullable=True),
        sa.Column('allow_custom_id', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1')
    )
    op.create_index('ix_building_configs_building_name', 'building_configs', ['building_name'])
    op.create_index('ix_building_configs_building_code', 'building_configs', ['building_code'])
    op.create_index('ix_building_configs_is_active', 'building_configs', ['is_active'])

    op.create_table('request_identifiers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identifier', sa.String(length=50), nullable=False, unique=True),
        sa.Column('building', sa.String(length=100), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('custom_pattern', sa.String(length=200), nullable=True),
        sa.Column('custom_sequence', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_request_identifiers_identifier', 'request_identifiers', ['identifier'])
    op.create_index('ix_request_identifiers_building', 'request_identifiers', ['building'])
    op.create_index('ix_request_identifiers_year', 'request_identifiers', ['year'])

    op.create_table('maintenance_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='MEDIUM'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='SUBMITTED'),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=False),
        sa.Column('building', sa.String(length=100), nullable=True),
        sa.Column('specific_location', sa.String(length=200), nullable=True),
        sa.Column('requested_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('custom_identifier', sa.String(length=50), nullable=True, unique=True),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('actual_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1')
    )
    for col in ('priority', 'status', 'category_id', 'building', 'requested_by_id', 'assigned_to_id',
                'completed_date', 'created_at'):
        op.create_index(f'ix_maintenance_requests_{col}', 'maintenance_requests', [col])

    op.create_table('request_status_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=True),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('changed_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_request_status_history_request_id', 'request_status_history', ['request_id'])

    op.create_table('request_assignment_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('to_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assignment_type', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('assigned_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_request_assignment_history_request_id', 'request_assignment_history', ['request_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=100)),
        sa.Column('role_snapshot', sa.String(length=32), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for tbl in ['audit_logs', 'request_assignment_history', 'request_status_history', 'maintenance_requests',
                'request_identifiers', 'building_configs', 'categories', 'users']:
        op.drop_table(tbl)
