"""
pgcascade: cascade-safe view management for PostgreSQL.

pgcascade updates views and materialized views by dropping and recreating
them, then restores the dependent views, indexes and triggers that a
cascading drop took with it.
"""

__version__ = "0.1.0"

from .adapter import PostgresAdapter
from .config import PgCascadeConfig
from .exceptions import (
    PgCascadeError,
    ConfigurationError,
    DatabaseError,
    StatementError,
    UnsupportedFeatureError,
    MaterializedViewsNotSupportedError,
    ConcurrentRefreshesNotSupportedError,
)
from .notifier import LoggingNotifier, Notifier

__all__ = [
    "__version__",
    "PostgresAdapter",
    "PgCascadeConfig",
    "PgCascadeError",
    "ConfigurationError",
    "DatabaseError",
    "StatementError",
    "UnsupportedFeatureError",
    "MaterializedViewsNotSupportedError",
    "ConcurrentRefreshesNotSupportedError",
    "LoggingNotifier",
    "Notifier",
]
