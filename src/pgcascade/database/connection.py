"""
Database connection management for pgcascade.

Provides the async PostgreSQL connection pool used by the command line
tools and the single-connection statement executor the schema engine
runs on.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Any, AsyncIterator, List
from urllib.parse import urlparse, parse_qs

import asyncpg
from pydantic import BaseModel, Field, field_validator

from ..exceptions import (
    DatabaseConnectionError,
    DatabaseConfigurationError,
    StatementError,
)


logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Database connection configuration."""

    host: str = Field(..., description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")

    # Connection pool settings
    min_size: int = Field(1, description="Minimum connections in pool")
    max_size: int = Field(4, description="Maximum connections in pool")

    # Connection settings
    command_timeout: float = Field(60.0, description="Command timeout in seconds")
    search_path: Optional[str] = Field(None, description="Schema search path")
    server_settings: Dict[str, str] = Field(
        default_factory=lambda: {"application_name": "pgcascade"},
        description="PostgreSQL server settings"
    )

    ssl_mode: Optional[str] = Field(None, description="SSL mode")

    @field_validator('database')
    @classmethod
    def validate_database(cls, v):
        if not v or not v.strip():
            raise ValueError("Database name is required")
        return v

    @classmethod
    def from_url(cls, url: str) -> "ConnectionConfig":
        """Create configuration from database URL."""
        parsed = urlparse(url)

        if parsed.scheme not in ("postgresql", "postgres"):
            raise DatabaseConfigurationError(f"Invalid database URL scheme: {parsed.scheme}")

        if not parsed.path or parsed.path == "/":
            raise DatabaseConfigurationError("Database name is required")

        query_params = parse_qs(parsed.query) if parsed.query else {}

        config_data = {
            "host": parsed.hostname or "localhost",
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip("/"),
            "user": parsed.username or "",
            "password": parsed.password or "",
        }

        if "sslmode" in query_params:
            config_data["ssl_mode"] = query_params["sslmode"][0]
        if "search_path" in query_params:
            config_data["search_path"] = query_params["search_path"][0]

        return cls(**config_data)

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Convert to asyncpg connection kwargs."""
        server_settings = dict(self.server_settings)
        if self.search_path:
            server_settings["search_path"] = self.search_path

        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "command_timeout": self.command_timeout,
            "server_settings": server_settings,
        }

        if self.ssl_mode:
            kwargs["ssl"] = self.ssl_mode

        return kwargs


class ConnectionPool:
    """Async PostgreSQL connection pool wrapper."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._pool is not None:
                return

            try:
                logger.info(
                    f"Initializing connection pool to {self.config.host}:{self.config.port}"
                    f"/{self.config.database} (min={self.config.min_size}, max={self.config.max_size})"
                )

                self._pool = await asyncpg.create_pool(
                    **self.config.to_connection_kwargs(),
                    min_size=self.config.min_size,
                    max_size=self.config.max_size,
                )

                logger.info("Connection pool initialized successfully")

            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"Failed to initialize connection pool: {e}")
                raise DatabaseConnectionError(f"Failed to initialize connection pool: {e}") from e

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._pool is not None:
                logger.info("Closing connection pool")
                await self._pool.close()
                self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection from the pool."""
        if self._pool is None:
            raise DatabaseConnectionError("Pool is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Connection"]:
        """Acquire a connection and run the block inside one transaction."""
        async with self.acquire() as raw:
            async with raw.transaction():
                yield Connection(raw)

    @property
    def is_initialized(self) -> bool:
        """Check if pool is initialized."""
        return self._pool is not None

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class Connection:
    """
    Statement executor bound to one asyncpg connection.

    Every schema component receives one of these explicitly. It never opens
    transactions of its own; callers own the enclosing transaction and the
    engine nests savepoints inside it.
    """

    MATERIALIZED_VIEWS_VERSION = (9, 3)
    CONCURRENT_REFRESH_VERSION = (9, 4)

    def __init__(self, raw: asyncpg.Connection):
        self.raw = raw

    async def execute(self, sql: str, *args) -> str:
        """Execute a statement and return its status."""
        logger.debug(f"SQL: {sql.strip()}")
        try:
            return await self.raw.execute(sql, *args)
        except asyncpg.exceptions.PostgresConnectionError as e:
            raise DatabaseConnectionError(f"Connection lost while running: {sql.strip()}", cause=e) from e
        except asyncpg.PostgresError as e:
            raise StatementError(sql, cause=e, sqlstate=getattr(e, "sqlstate", None)) from e

    async def select_rows(self, sql: str, *args) -> List[asyncpg.Record]:
        """Run a query and return all rows in order."""
        logger.debug(f"SQL: {sql.strip()}")
        try:
            return await self.raw.fetch(sql, *args)
        except asyncpg.exceptions.PostgresConnectionError as e:
            raise DatabaseConnectionError(f"Connection lost while running: {sql.strip()}", cause=e) from e
        except asyncpg.PostgresError as e:
            raise StatementError(sql, cause=e, sqlstate=getattr(e, "sqlstate", None)) from e

    @staticmethod
    def quote_identifier(name: str) -> str:
        """Quote a single identifier."""
        return '"' + name.replace('"', '""') + '"'

    def quote_table_name(self, name: str) -> str:
        """Quote a possibly schema-qualified relation name part by part."""
        return ".".join(self.quote_identifier(part) for part in name.split("."))

    def _server_version_at_least(self, minimum) -> bool:
        version = self.raw.get_server_version()
        return (version.major, version.minor) >= minimum

    def supports_materialized_views(self) -> bool:
        """Materialized views arrived in PostgreSQL 9.3."""
        return self._server_version_at_least(self.MATERIALIZED_VIEWS_VERSION)

    def supports_concurrent_refreshes(self) -> bool:
        """REFRESH ... CONCURRENTLY arrived in PostgreSQL 9.4."""
        return self._server_version_at_least(self.CONCURRENT_REFRESH_VERSION)
