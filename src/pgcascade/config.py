"""
Configuration system for pgcascade using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError


class DatabaseSettings(BaseModel):
    """Database connection configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field("", description="Database password")
    ssl_mode: Optional[str] = Field(None, description="SSL mode")
    command_timeout: float = Field(60.0, description="Command timeout in seconds")
    search_path: Optional[str] = Field(
        None, description="Schema search path views are resolved against"
    )

    def to_dsn(self, mask_password: bool = False) -> str:
        """Convert to PostgreSQL DSN string, optionally hiding the password for display."""
        password = "****" if mask_password and self.password else self.password
        dsn = (
            f"postgresql://{self.user}:{password}@{self.host}:{self.port}/"
            f"{self.database}"
        )
        if self.ssl_mode:
            dsn += f"?sslmode={self.ssl_mode}"
        return dsn

    def to_connection_config(self) -> ConnectionConfig:
        """Pool configuration for a single-connection command line run."""
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            ssl_mode=self.ssl_mode,
            command_timeout=self.command_timeout,
            search_path=self.search_path,
            min_size=1,
            max_size=1,
        )


class ReapplicationConfig(BaseModel):
    """How restored and lost indexes and triggers are reported."""

    notify: bool = Field(True, description="Report each reapplied index and trigger")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class PgCascadeConfig(BaseSettings):
    """Main pgcascade configuration."""

    database: DatabaseSettings = Field(..., description="Database connection")
    reapplication: ReapplicationConfig = Field(
        default_factory=ReapplicationConfig, description="Reapplication reporting"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PGCASCADE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PgCascadeConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True), f, default_flow_style=False, indent=2
            )
