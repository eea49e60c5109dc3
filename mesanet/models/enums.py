"""
Enumerations shared by models, schemas and services.

The permission catalog lives here: ``Permission`` is the closed vocabulary
that roles grant and routes require. Identifiers follow
``resource:action[:scope]``.
"""

import enum


class Permission(str, enum.Enum):
    """Every permission the application knows about."""

    # User management
    USER_READ = "user:read"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_LIST = "user:list"

    # Role management
    ROLE_READ = "role:read"
    ROLE_CREATE = "role:create"
    ROLE_UPDATE = "role:update"
    ROLE_DELETE = "role:delete"
    ROLE_ASSIGN = "role:assign"

    # Session management
    SESSION_READ_OWN = "session:read:own"
    SESSION_READ_ANY = "session:read:any"
    SESSION_REVOKE_OWN = "session:revoke:own"
    SESSION_REVOKE_ANY = "session:revoke:any"

    # Administration
    ADMIN_PANEL_ACCESS = "admin:panel:access"
    SYSTEM_SETTINGS = "system:settings"
    AUDIT_LOG_READ = "audit:log:read"

    # Scheduling
    SHIFT_READ_OWN = "shift:read:own"
    SHIFT_READ_ANY = "shift:read:any"
    SHIFT_CREATE_ANY = "shift:create:any"
    SHIFT_UPDATE_ANY = "shift:update:any"
    SHIFT_DELETE_ANY = "shift:delete:any"


def is_permission(value: str) -> bool:
    """Return True if ``value`` is a catalog permission identifier."""
    return value in Permission._value2member_map_


class SystemRole(str, enum.Enum):
    """Built-in roles seeded at startup."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"


DEFAULT_ROLE_PERMISSIONS: dict[SystemRole, frozenset[Permission]] = {
    SystemRole.SUPER_ADMIN: frozenset(Permission),
    SystemRole.ADMIN: frozenset(
        {
            Permission.USER_READ,
            Permission.USER_CREATE,
            Permission.USER_UPDATE,
            Permission.USER_LIST,
            Permission.ROLE_READ,
            Permission.ROLE_ASSIGN,
            Permission.SESSION_READ_OWN,
            Permission.SESSION_READ_ANY,
            Permission.SESSION_REVOKE_OWN,
            Permission.SESSION_REVOKE_ANY,
            Permission.ADMIN_PANEL_ACCESS,
            Permission.AUDIT_LOG_READ,
            Permission.SHIFT_READ_ANY,
            Permission.SHIFT_CREATE_ANY,
        }
    ),
    SystemRole.MANAGER: frozenset(
        {
            Permission.USER_READ,
            Permission.USER_LIST,
            Permission.SESSION_READ_OWN,
            Permission.SESSION_REVOKE_OWN,
            Permission.SHIFT_READ_OWN,
            Permission.SHIFT_READ_ANY,
            Permission.SHIFT_CREATE_ANY,
            Permission.SHIFT_UPDATE_ANY,
        }
    ),
    SystemRole.USER: frozenset(
        {
            Permission.USER_READ,
            Permission.USER_UPDATE,
            Permission.SESSION_READ_OWN,
            Permission.SESSION_REVOKE_OWN,
            Permission.SHIFT_READ_OWN,
        }
    ),
}

SYSTEM_ROLE_HIERARCHY: dict[SystemRole, int] = {
    SystemRole.SUPER_ADMIN: 100,
    SystemRole.ADMIN: 80,
    SystemRole.MANAGER: 50,
    SystemRole.USER: 10,
}


class AuditAction(str, enum.Enum):
    """Security- and business-relevant events recorded in the audit trail."""

    # Authentication
    USER_LOGIN = "user:login"
    USER_LOGOUT = "user:logout"
    USER_REGISTER = "user:register"
    USER_LOGIN_FAILED = "user:login:failed"
    USER_PASSWORD_RESET = "user:password_reset"
    USER_EMAIL_VERIFIED = "user:email_verified"

    # Account administration
    USER_UPDATE = "user:update"
    USER_ACTIVATE = "user:activate"
    USER_DEACTIVATE = "user:deactivate"

    # Roles
    ROLE_CREATE = "role:create"
    ROLE_UPDATE = "role:update"
    ROLE_DELETE = "role:delete"
    ROLE_ASSIGN = "role:assign"
    ROLE_UNASSIGN = "role:unassign"

    # Sessions
    SESSION_CREATE = "session:create"
    SESSION_REVOKE = "session:revoke"
    SESSION_REVOKE_ALL = "session:revoke:all"

    # Two-factor
    TWO_FACTOR_ENABLE = "security:2fa:enable"
    TWO_FACTOR_DISABLE = "security:2fa:disable"
    TWO_FACTOR_BACKUP_CODES = "security:2fa:backup_codes"
    TWO_FACTOR_FAILED = "security:2fa:failed"

    # Access control
    ACCESS_DENIED = "access:denied"

    # Scheduling
    SHIFT_CREATE = "shift:create"
    SHIFT_UPDATE = "shift:update"
    SHIFT_DELETE = "shift:delete"


class AuditSeverity(str, enum.Enum):
    """Severity of an audit log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ShiftStatus(str, enum.Enum):
    """Lifecycle state of a scheduled shift."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VerificationPurpose(str, enum.Enum):
    """What a one-time email code authorizes."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (not member names) in Enum columns."""
    return [member.value for member in enum_cls]
