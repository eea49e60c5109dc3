"""
Core module for Mesa Networks API.

Exports the main configuration component.
"""

from mesanet.core.config import settings

__all__ = [
    # Config
    "settings",
]
