"""
Repository layer for database operations.

Repositories wrap SQLAlchemy queries behind small, typed methods.
They flush but never commit; services own transaction boundaries.
"""

from mesanet.repositories.audit_repository import AuditLogRepository
from mesanet.repositories.base import BaseRepository
from mesanet.repositories.credential_repository import (
    BackupCodeRepository,
    VerificationCodeRepository,
)
from mesanet.repositories.role_repository import RoleRepository
from mesanet.repositories.session_repository import SessionRepository
from mesanet.repositories.shift_repository import ShiftRepository
from mesanet.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "AuditLogRepository",
    "BackupCodeRepository",
    "VerificationCodeRepository",
    "RoleRepository",
    "SessionRepository",
    "ShiftRepository",
    "UserRepository",
]
