"""
Database models for Mesa Networks API.

This module exports all SQLAlchemy models and the declarative base.
Import models from this module to ensure proper initialization.
"""

from mesanet.models.audit_log import AuditLog
from mesanet.models.base import Base
from mesanet.models.enums import (
    AuditAction,
    AuditSeverity,
    Permission,
    ShiftStatus,
    SystemRole,
    VerificationPurpose,
)
from mesanet.models.mixins import TimestampMixin
from mesanet.models.session import Session, VerificationCode
from mesanet.models.shift import Shift
from mesanet.models.user import BackupCode, Role, User, user_roles

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Identity
    "User",
    "Role",
    "user_roles",
    "BackupCode",
    "Session",
    "VerificationCode",
    # Audit
    "AuditLog",
    "AuditAction",
    "AuditSeverity",
    # Catalog
    "Permission",
    "SystemRole",
    # Scheduling
    "Shift",
    "ShiftStatus",
    "VerificationPurpose",
]
