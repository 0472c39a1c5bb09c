"""Database utilities for labelsync.

This module contains:
- Connection pool management
- Store error hierarchy
- Alembic migrations
"""

from labelsync.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StoreError,
    ValidationError,
    record_key,
)

__all__ = [
    "StoreError",
    "ConnectionError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "record_key",
]
