"""
Service layer.

Services own business rules and transaction boundaries; routes stay thin
and repositories only build queries.
"""
