"""
Database connection management for tablesync.

Provides async PostgreSQL connection pooling for the source databases
and the schema catalog.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Any, AsyncIterator, List

import asyncpg
from pydantic import BaseModel, Field, field_validator

from ..exceptions import DatabaseConnectionError


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
    max_size: int = Field(5, description="Maximum connections in pool")

    # Connection settings
    command_timeout: float = Field(60.0, description="Command timeout in seconds")
    server_settings: Dict[str, str] = Field(
        default_factory=lambda: {"application_name": "tablesync"},
        description="PostgreSQL server settings"
    )
    ssl_mode: Optional[str] = Field(None, description="SSL mode")

    @field_validator('database')
    @classmethod
    def validate_database(cls, v):
        if not v or not v.strip():
            raise ValueError("Database name is required")
        return v

    def for_database(self, database: str) -> "ConnectionConfig":
        """Same server and credentials, different database."""
        return self.model_copy(update={"database": database})

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Convert to asyncpg connection kwargs."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "command_timeout": self.command_timeout,
            "server_settings": self.server_settings,
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

            except Exception as e:
                logger.error(f"Failed to initialize connection pool: {e}")
                raise DatabaseConnectionError(f"Failed to initialize connection pool: {e}") from e

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._pool is not None:
                logger.info(f"Closing connection pool to {self.config.database}")
                await self._pool.close()
                self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection from the pool."""
        if self._pool is None:
            raise DatabaseConnectionError("Pool is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return status."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        """Fetch all results from a query."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Fetch a single row from a query."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @property
    def is_initialized(self) -> bool:
        """Check if pool is initialized."""
        return self._pool is not None


class DatabaseManager:
    """Manages one connection pool per source database."""

    def __init__(self, base_config: ConnectionConfig):
        self.base_config = base_config
        self._pools: Dict[str, ConnectionPool] = {}
        self._lock = asyncio.Lock()

    async def get_pool(self, database: str) -> ConnectionPool:
        """Get the pool for ``database``, creating and initializing it on first use."""
        async with self._lock:
            pool = self._pools.get(database)
            if pool is None:
                logger.info(f"Adding database connection '{database}'")
                pool = ConnectionPool(self.base_config.for_database(database))
                self._pools[database] = pool

            if not pool.is_initialized:
                await pool.initialize()
        return pool

    async def close_all(self) -> None:
        """Close all database connections."""
        async with self._lock:
            logger.info("Closing all database connections")
            for name, pool in self._pools.items():
                try:
                    await pool.close()
                except Exception as e:
                    logger.error(f"Error closing pool '{name}': {e}")

            self._pools.clear()
