"""Initial schema for Mesa Networks API

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17

Tables Created:
- roles: Permission bundles with hierarchy and inheritance
- users: Accounts, credentials and two-factor state
- user_roles: User-role associations
- backup_codes: Hashed two-factor recovery codes
- sessions: Server-tracked login sessions (token hashes only)
- verification_codes: Hashed emailed one-time codes
- audit_logs: Append-only audit trail
- shifts: Scheduled employee shifts

System roles are seeded by the application at startup, not here.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')

AUDIT_ACTIONS = (
    'user:login', 'user:logout', 'user:register', 'user:login:failed',
    'user:password_reset', 'user:email_verified',
    'user:update', 'user:activate', 'user:deactivate',
    'role:create', 'role:update', 'role:delete', 'role:assign', 'role:unassign',
    'session:create', 'session:revoke', 'session:revoke:all',
    'security:2fa:enable', 'security:2fa:disable',
    'security:2fa:backup_codes', 'security:2fa:failed',
    'access:denied',
    'shift:create', 'shift:update', 'shift:delete',
)
AUDIT_SEVERITIES = ('info', 'warning', 'error', 'critical')
SHIFT_STATUSES = ('scheduled', 'completed', 'cancelled')
VERIFICATION_PURPOSES = ('email_verification', 'password_reset')


def upgrade() -> None:
    """Create the complete schema."""
    # =========================================================================
    # STEP 1: Identity
    # =========================================================================
    op.create_table(
        'roles',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=250), nullable=True),
        sa.Column('permissions', JSON, nullable=False),
        sa.Column('hierarchy_level', sa.Integer(), nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('inherits', sa.Boolean(), nullable=False),
        sa.Column('inherits_from', JSON, nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_roles')),
    )
    op.create_index(op.f('ix_roles_name'), 'roles', ['name'], unique=True)
    op.create_index(op.f('ix_roles_hierarchy_level'), 'roles', ['hierarchy_level'])
    op.create_index(op.f('ix_roles_created_at'), 'roles', ['created_at'])

    op.create_table(
        'users',
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('email_verified', sa.Boolean(), nullable=False),
        sa.Column('two_factor_secret', sa.String(length=512), nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_is_active'), 'users', ['is_active'])
    op.create_index(op.f('ix_users_created_at'), 'users', ['created_at'])

    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_user_roles_user_id_users'), ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['role_id'], ['roles.id'],
            name=op.f('fk_user_roles_role_id_roles'), ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('user_id', 'role_id', name=op.f('pk_user_roles')),
    )
    op.create_index(op.f('ix_user_roles_role_id'), 'user_roles', ['role_id'])

    # =========================================================================
    # STEP 2: Credentials and Sessions
    # =========================================================================
    op.create_table(
        'backup_codes',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_backup_codes_user_id_users'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_backup_codes')),
    )
    op.create_index(op.f('ix_backup_codes_user_id'), 'backup_codes', ['user_id'])

    op.create_table(
        'sessions',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('device_type', sa.String(length=20), nullable=False),
        sa.Column('browser', sa.String(length=50), nullable=True),
        sa.Column('os', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_sessions_user_id_users'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sessions')),
    )
    op.create_index(op.f('ix_sessions_user_id'), 'sessions', ['user_id'])
    op.create_index(op.f('ix_sessions_token_hash'), 'sessions', ['token_hash'], unique=True)
    op.create_index('ix_sessions_user_active', 'sessions', ['user_id', 'is_active'])

    op.create_table(
        'verification_codes',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column(
            'purpose',
            sa.Enum(*VERIFICATION_PURPOSES, name='verification_purpose_enum'),
            nullable=False,
        ),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_verification_codes_user_id_users'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_verification_codes')),
    )
    op.create_index(op.f('ix_verification_codes_user_id'), 'verification_codes', ['user_id'])

    # =========================================================================
    # STEP 3: Audit Trail
    # =========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='audit_action_enum'), nullable=False),
        sa.Column(
            'severity',
            sa.Enum(*AUDIT_SEVERITIES, name='audit_severity_enum'),
            nullable=False,
        ),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.String(length=64), nullable=True),
        sa.Column('resource_name', sa.String(length=255), nullable=True),
        sa.Column('details', JSON, nullable=True),
        sa.Column('changes', JSON, nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_logs')),
    )
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'])
    op.create_index(op.f('ix_audit_logs_severity'), 'audit_logs', ['severity'])
    op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'])
    op.create_index(op.f('ix_audit_logs_resource_type'), 'audit_logs', ['resource_type'])
    op.create_index(op.f('ix_audit_logs_success'), 'audit_logs', ['success'])
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_user_created', 'audit_logs', ['user_id', 'created_at'])
    op.create_index('ix_audit_logs_action_created', 'audit_logs', ['action', 'created_at'])

    # =========================================================================
    # STEP 4: Scheduling
    # =========================================================================
    op.create_table(
        'shifts',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('location_id', sa.String(length=64), nullable=True),
        sa.Column('scheduled_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('scheduled_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum(*SHIFT_STATUSES, name='shift_status_enum'), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'scheduled_end > scheduled_start', name=op.f('ck_shifts_window_order')
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_shifts_user_id_users'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_shifts')),
    )
    op.create_index(op.f('ix_shifts_created_at'), 'shifts', ['created_at'])
    op.create_index(
        'ix_shifts_user_window', 'shifts', ['user_id', 'scheduled_start', 'scheduled_end']
    )


def downgrade() -> None:
    """Drop every table and enum type."""
    op.drop_table('shifts')
    op.drop_table('audit_logs')
    op.drop_table('verification_codes')
    op.drop_table('sessions')
    op.drop_table('backup_codes')
    op.drop_table('user_roles')
    op.drop_table('users')
    op.drop_table('roles')

    bind = op.get_bind()
    for enum_name in (
        'shift_status_enum',
        'audit_severity_enum',
        'audit_action_enum',
        'verification_purpose_enum',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
