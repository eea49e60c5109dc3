"""
Role schemas for request/response validation.

Permission lists are validated against the closed Permission catalog,
so unknown identifiers are rejected before reaching the service layer.
"""

import uuid
from datetime import datetime

from pydantic import Field

from mesanet.models.enums import Permission
from mesanet.schemas.common import CamelModel


class RoleCreate(CamelModel):
    """Request body for POST /roles."""

    name: str = Field(..., min_length=3, max_length=50)
    description: str | None = Field(default=None, max_length=250)
    permissions: list[Permission] = Field(default_factory=list)
    hierarchy_level: int = Field(default=0, ge=0)
    inherits: bool = False
    inherits_from: list[uuid.UUID] = Field(default_factory=list)


class RoleUpdate(CamelModel):
    """
    Request body for PATCH /roles/{id}.

    Only supplied fields are applied (``model_fields_set``). System roles
    accept nothing but ``hierarchyLevel``.
    """

    name: str | None = Field(default=None, min_length=3, max_length=50)
    description: str | None = Field(default=None, max_length=250)
    permissions: list[Permission] | None = None
    is_active: bool | None = None
    hierarchy_level: int | None = Field(default=None, ge=0)
    inherits: bool | None = None
    inherits_from: list[uuid.UUID] | None = None


class RoleResponse(CamelModel):
    """Role as returned by the API."""

    id: uuid.UUID
    name: str
    description: str | None = None
    permissions: list[str]
    hierarchy_level: int
    is_system: bool
    is_active: bool
    inherits: bool
    inherits_from: list[str]
    created_at: datetime
    updated_at: datetime
