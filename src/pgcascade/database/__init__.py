"""
Database integration package for pgcascade.

This package provides:
- Async PostgreSQL connection pooling
- A single-connection statement executor with feature detection
- Catalog introspection of views, indexes and triggers
"""

from .connection import Connection, ConnectionConfig, ConnectionPool
from .introspection import CatalogIntrospector, Index, Trigger, View

__all__ = [
    "Connection",
    "ConnectionConfig",
    "ConnectionPool",
    "CatalogIntrospector",
    "Index",
    "Trigger",
    "View",
]
