"""
Common Pydantic schemas for API request/response handling.

This module provides:
- CamelModel: base model exposing camelCase field aliases on the wire
- ApiResponse: the uniform response envelope (for documentation)
- MessageResponse: payload for endpoints that only report an outcome
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Type variable for generic envelope payloads
DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """
    Base schema using camelCase aliases.

    Requests may use either the alias or the field name; responses are
    always serialized by alias.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[DataT]):
    """
    Uniform response envelope.

    Attributes:
        success: True for 2xx responses
        data: Payload (omitted on failure)
        code: Machine-stable error kind (failures only)
        messages: Human-readable messages; non-empty on failure
    """

    success: bool
    data: DataT | None = None
    code: str | None = None
    messages: list[str] = Field(default_factory=list)


class MessageResponse(CamelModel):
    """Payload carrying a single human-readable outcome."""

    message: str
