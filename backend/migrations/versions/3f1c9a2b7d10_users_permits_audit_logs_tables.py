"""users + permits + audit_logs tables

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2025-11-18 09:12:44.310245

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table(
        'permits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('permit_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requestor_name', sa.String(), nullable=True),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('contact_number', sa.String(), nullable=True),
        sa.Column('emergency_contact', sa.String(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('risk_level', sa.String(), nullable=True),
        sa.Column('safety_officer', sa.String(), nullable=True),
        sa.Column('department_head', sa.String(), nullable=True),
        sa.Column('maintenance_approver', sa.String(), nullable=True),
        sa.Column('identified_hazards', sa.Text(), nullable=True),
        sa.Column('additional_comments', sa.Text(), nullable=True),
        sa.Column('selected_hazards', sa.JSON(), nullable=True),
        sa.Column('hazard_notes', sa.Text(), nullable=True),
        sa.Column('completed_measures', sa.JSON(), nullable=True),
        sa.Column('immediate_actions', sa.Text(), nullable=True),
        sa.Column('before_work_starts', sa.Text(), nullable=True),
        sa.Column('compliance_notes', sa.Text(), nullable=True),
        sa.Column('overall_risk', sa.String(), nullable=True),
        sa.Column('performer_name', sa.String(), nullable=True),
        sa.Column('performer_signature', sa.Text(), nullable=True),
        sa.Column('pre_work_measures_signature', sa.Text(), nullable=True),
        sa.Column('work_removal_signature', sa.Text(), nullable=True),
        sa.Column('work_location_id', sa.Integer(), nullable=True),
        sa.Column('map_position_x', sa.Float(), nullable=True),
        sa.Column('map_position_y', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_permits_id'), 'permits', ['id'], unique=False)
    op.create_index(op.f('ix_permits_permit_id'), 'permits', ['permit_id'], unique=True)

    # Append-only; permit_id carries no foreign key so history outlives the permit row
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('permit_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('field_name', sa.String(), nullable=True),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_permit_id'), 'audit_logs', ['permit_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action_type'), 'audit_logs', ['action_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_audit_logs_created_at'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_action_type'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_user_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_permit_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_id'), table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index(op.f('ix_permits_permit_id'), table_name='permits')
    op.drop_index(op.f('ix_permits_id'), table_name='permits')
    op.drop_table('permits')

    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_table('users')
