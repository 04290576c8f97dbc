"""request comments

Revision ID: 0002_request_comments
Revises: 0001_maintenance_core
Create Date: 2025-10-02
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_request_comments'
down_revision = '0001_maintenance_core'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('request_comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_request_comments_request_id', 'request_comments', ['request_id'])
    op.create_index('ix_request_comments_user_id', 'request_comments', ['user_id'])
    op.create_index('ix_request_comments_created_at', 'request_comments', ['created_at'])


def downgrade():
    op.drop_table('request_comments')
