"""
Pydantic schemas for request validation and response serialization.

All schemas expose camelCase aliases on the wire (see CamelModel).
"""
