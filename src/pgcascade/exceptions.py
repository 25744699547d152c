"""
Exception classes for pgcascade.
"""

from typing import Any, Dict, Optional


class PgCascadeError(Exception):
    """Base exception for all pgcascade errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(PgCascadeError):
    """Raised when there's an error in configuration."""

    pass


class DatabaseError(PgCascadeError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class DatabaseConfigurationError(DatabaseError):
    """Raised when there's an error in database configuration."""

    pass


class StatementError(DatabaseError):
    """Raised when the server rejects a statement."""

    def __init__(
        self,
        sql: str,
        cause: Optional[Exception] = None,
        sqlstate: Optional[str] = None,
    ) -> None:
        details = {}
        if sqlstate:
            details["sqlstate"] = sqlstate

        super().__init__(f"Statement failed: {sql.strip()}", details, cause)
        self.sql = sql
        self.sqlstate = sqlstate


class UnsupportedFeatureError(DatabaseError):
    """Raised when the connected server lacks a required feature."""

    def __init__(self, feature: str, minimum_version: Optional[str] = None) -> None:
        message = f"{feature} are not supported by this PostgreSQL server"
        details = {}
        if minimum_version:
            details["minimum_version"] = minimum_version

        super().__init__(message, details)
        self.feature = feature
        self.minimum_version = minimum_version


class MaterializedViewsNotSupportedError(UnsupportedFeatureError):
    """Raised when materialized views are used against a server without them."""

    def __init__(self) -> None:
        super().__init__("Materialized views", minimum_version="9.3")


class ConcurrentRefreshesNotSupportedError(UnsupportedFeatureError):
    """Raised when a concurrent refresh is requested but not available."""

    def __init__(self) -> None:
        super().__init__("Concurrent materialized view refreshes", minimum_version="9.4")
