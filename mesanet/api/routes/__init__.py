"""
API routes for Mesa Networks.

This package contains all API endpoint definitions organized by feature.
"""

from mesanet.api.routes import audit_logs, auth, health, roles, schedules, two_factor, users

__all__ = ["audit_logs", "auth", "health", "roles", "schedules", "two_factor", "users"]
