"""
User, Role, and the user_roles association.

This module defines:
- User: Identity, profile, account state and embedded two-factor fields
- Role: Named bundle of permission identifiers, ordered by hierarchy level
- user_roles: Many-to-many association between users and roles

Architecture:
- Users reference roles; roles are never embedded or owned by a user
- Role permissions are a JSON array of catalog identifiers
- Role inheritance is an opt-in flag plus a JSON array of parent role ids
- The TOTP secret is stored encrypted (see mesanet.core.encryption)
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mesanet.models.base import Base, JSONType, UTCDateTime, utcnow
from mesanet.models.mixins import TimestampMixin

# =============================================================================
# Association Table
# =============================================================================

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "role_id",
        Uuid,
        # RESTRICT keeps every user's role reference resolvable
        ForeignKey("roles.id", ondelete="RESTRICT"),
        primary_key=True,
        index=True,
    ),
)


# =============================================================================
# Role Model
# =============================================================================


class Role(Base, TimestampMixin):
    """
    Role model: a named, ordered bundle of permissions.

    Attributes:
        id: UUID primary key
        name: Unique role name (e.g. "ADMIN")
        description: Optional human-readable description
        permissions: List of permission identifiers
        hierarchy_level: Ordering key; higher is more privileged
        is_system: Built-in role; only hierarchy_level may change
        is_active: Inactive roles grant nothing
        inherits: Whether permissions of parent roles are included
        inherits_from: Parent role ids (as strings); empty means every
            active role with a lower hierarchy level
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(250), nullable=True)
    permissions: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    hierarchy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    inherits: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inherits_from: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"Role(id={self.id}, name={self.name}, level={self.hierarchy_level})"


# =============================================================================
# User Model
# =============================================================================


class User(Base, TimestampMixin):
    """
    User model for authentication and profile management.

    Attributes:
        id: UUID primary key (also the identity reference in session tokens)
        email: Unique email address (stored lower-cased)
        first_name, last_name: Profile names
        password_hash: Argon2id hash
        is_active: False while the account is suspended
        email_verified: Set once the user confirms an emailed code
        two_factor_secret: Encrypted TOTP secret (None when never set up)
        two_factor_enabled: True once setup has been verified
        last_login_at: Timestamp of last successful login
        roles: Assigned roles (loaded eagerly)

    Users are never hard-deleted; suspension is the terminal state
    reachable through the API.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    two_factor_secret: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_login_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    roles: Mapped[list[Role]] = relationship(
        secondary=user_roles,
        lazy="selectin",
        order_by=Role.name,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email})"


# =============================================================================
# Backup Codes
# =============================================================================


class BackupCode(Base):
    """
    One-time two-factor recovery code, stored as a SHA-256 hash.

    Each row is consumed by deleting it, so a code can be used at most once.
    """

    __tablename__ = "backup_codes"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
