"""
Configuration system for tablesync using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, ConfigDict, field_validator
from pydantic_settings import BaseSettings

from .database.connection import ConnectionConfig
from .database.introspection import DEFAULT_EXCLUDED_SCHEMAS
from .database.matchers import Matcher, create_matcher
from .exceptions import ConfigurationError
from .schema.models import TableIdentifier


class DatabaseConnection(BaseModel):
    """Database connection configuration."""

    host: str = Field(..., description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field("postgres", description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")
    ssl_mode: Optional[str] = Field(None, description="SSL mode")
    command_timeout: int = Field(60, description="Command timeout in seconds")
    pool_size: int = Field(5, description="Maximum connections per pool")

    def to_connection_config(self) -> ConnectionConfig:
        """Convert to the connection pool configuration."""
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            ssl_mode=self.ssl_mode,
            command_timeout=float(self.command_timeout),
            max_size=self.pool_size,
        )


class SourceConfig(BaseModel):
    """Which source databases and tables to synchronize from."""

    connection: DatabaseConnection = Field(
        ..., description="Source server connection, database is the maintenance database"
    )
    database_pattern: str = Field(..., description="Pattern selecting source databases")
    table_pattern: str = Field(..., description="Pattern selecting source tables")
    match_strategy: Literal["regex", "glob", "exact"] = Field(
        "regex", description="How patterns are matched against names"
    )
    excluded_schemas: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_SCHEMAS),
        description="Schemas never searched for source tables",
    )
    discovery_concurrency: int = Field(
        8, description="Maximum concurrent table metadata reads"
    )

    @field_validator("discovery_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("discovery_concurrency must be at least 1")
        return v

    def database_matcher(self) -> Matcher:
        return create_matcher(self.database_pattern, self.match_strategy)

    def table_matcher(self) -> Matcher:
        return create_matcher(self.table_pattern, self.match_strategy)


class TargetConfig(BaseModel):
    """The single target table all sources are synchronized into."""

    database: str = Field(..., description="Target database name")
    table: str = Field(..., description="Target table name")
    primary_keys: List[str] = Field(
        default_factory=list, description="Primary key columns, inferred if empty"
    )
    partition_keys: List[str] = Field(
        default_factory=list, description="Partition key columns"
    )
    options: Dict[str, str] = Field(
        default_factory=dict, description="Options passed to the target store"
    )

    @property
    def identifier(self) -> TableIdentifier:
        return TableIdentifier(self.database, self.table)


class CatalogConfig(BaseModel):
    """Where target schemas are persisted."""

    connection: DatabaseConnection = Field(..., description="Catalog database connection")
    schema_name: str = Field(
        "tablesync_catalog", alias="schema", description="Catalog schema name"
    )

    model_config = ConfigDict(populate_by_name=True)


class ListenerConfig(BaseModel):
    """Schema change listener configuration."""

    enabled: bool = Field(True, description="Listen for schema changes after startup")
    channel: str = Field(
        "tablesync_schema_changes", description="PostgreSQL NOTIFY channel"
    )


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


class TableSyncConfig(BaseSettings):
    """Main tablesync configuration."""

    service_name: str = Field("tablesync", description="Service name")
    debug: bool = Field(False, description="Enable debug mode")

    source: SourceConfig = Field(..., description="Source selection")
    target: TargetConfig = Field(..., description="Target table")
    catalog: CatalogConfig = Field(..., description="Schema catalog")
    listener: ListenerConfig = Field(
        default_factory=ListenerConfig, description="Schema change listener"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="TABLESYNC_",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TableSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)

            if not isinstance(data, dict):
                raise ConfigurationError(f"Configuration file is empty or not a mapping: {path}")

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

    def validate_config(self) -> None:
        """Validate the configuration for consistency."""
        # Raises ConfigurationError on an invalid pattern
        self.source.database_matcher()
        self.source.table_matcher()

        for name in ("primary_keys", "partition_keys"):
            keys = getattr(self.target, name)
            if len(keys) != len(set(keys)):
                raise ConfigurationError(f"Duplicate column in target {name}: {keys}")

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True, by_alias=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
