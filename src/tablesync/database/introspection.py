"""
Database schema introspection for tablesync.

Reads databases, tables, column metadata and primary keys from a
PostgreSQL server for source discovery.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .connection import ConnectionPool
from ..exceptions import DatabaseError
from ..schema.models import SourceSchema
from ..schema.native_types import to_column_type


logger = logging.getLogger(__name__)


DEFAULT_EXCLUDED_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")


@dataclass
class ColumnInfo:
    """Raw metadata of one source column, as reported by the catalog."""

    name: str
    data_type: str
    precision: Optional[int] = None
    scale: Optional[int] = None
    is_nullable: bool = True
    ordinal_position: int = 0

    def __str__(self) -> str:
        result = f"{self.name} {self.data_type}"
        if self.precision is not None and self.scale is not None:
            result += f"({self.precision}, {self.scale})"
        elif self.precision is not None:
            result += f"({self.precision})"
        if not self.is_nullable:
            result += " NOT NULL"
        return result


@dataclass
class TableInfo:
    """Information about a source table."""

    database: str
    schema: str
    name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        """Get the fully qualified table name."""
        return f"{self.schema}.{self.name}"

    @property
    def origin(self) -> str:
        """Label used to identify this table in diagnostics."""
        return f"{self.database}.{self.schema}.{self.name}"

    def to_source_schema(self) -> SourceSchema:
        """
        Translate the raw column metadata into a SourceSchema.

        Raises:
            UnrecognizedNativeTypeError: If any column type has no mapping
        """
        columns = {}
        for column in self.columns:
            columns[column.name] = to_column_type(
                column.data_type,
                column.precision,
                column.scale,
                origin=self.origin,
                column=column.name,
            )
        return SourceSchema(
            origin=self.origin, columns=columns, primary_key=tuple(self.primary_key)
        )


class SourceIntrospector:
    """Catalog queries against one PostgreSQL database."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    @property
    def database(self) -> str:
        return self.pool.config.database

    async def list_databases(self) -> List[str]:
        """List every connectable, non-template database on the server."""
        query = """
            SELECT datname
            FROM pg_database
            WHERE NOT datistemplate AND datallowconn
            ORDER BY datname
        """

        try:
            rows = await self.pool.fetch(query)
            return [row["datname"] for row in rows]
        except Exception as e:
            logger.error(f"Error listing databases: {e}")
            raise DatabaseError(f"Failed to list databases: {e}") from e

    async def list_tables(
        self, excluded_schemas: Sequence[str] = DEFAULT_EXCLUDED_SCHEMAS
    ) -> List[Tuple[str, str]]:
        """List all base tables outside the excluded schemas."""
        query = """
            SELECT table_schema, table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
            AND NOT (table_schema = ANY($1::text[]))
            ORDER BY table_schema, table_name
        """

        try:
            rows = await self.pool.fetch(query, list(excluded_schemas))
            return [(row["table_schema"], row["table_name"]) for row in rows]
        except Exception as e:
            logger.error(f"Error listing tables in {self.database}: {e}")
            raise DatabaseError(f"Failed to list tables: {e}") from e

    async def get_columns(self, schema: str, table: str) -> List[ColumnInfo]:
        """Get all columns for a table in ordinal order."""
        query = """
            SELECT
                c.column_name,
                CASE WHEN c.data_type IN ('USER-DEFINED', 'ARRAY')
                     THEN c.udt_name ELSE c.data_type END AS data_type,
                COALESCE(c.character_maximum_length, c.numeric_precision) AS precision,
                c.numeric_scale AS scale,
                c.is_nullable,
                c.ordinal_position
            FROM information_schema.columns c
            WHERE c.table_schema = $1 AND c.table_name = $2
            ORDER BY c.ordinal_position
        """

        try:
            rows = await self.pool.fetch(query, schema, table)
            return [
                ColumnInfo(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    precision=row["precision"],
                    scale=row["scale"],
                    is_nullable=row["is_nullable"] == "YES",
                    ordinal_position=row["ordinal_position"],
                )
                for row in rows
            ]
        except Exception as e:
            logger.error(f"Error getting columns for {self.database}.{schema}.{table}: {e}")
            raise DatabaseError(f"Failed to get columns: {e}") from e

    async def get_primary_key(self, schema: str, table: str) -> List[str]:
        """Get primary key column names in key order."""
        query = """
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON kcu.constraint_schema = tc.constraint_schema
             AND kcu.constraint_name = tc.constraint_name
             AND kcu.table_name = tc.table_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_schema = $1 AND tc.table_name = $2
            ORDER BY kcu.ordinal_position
        """

        try:
            rows = await self.pool.fetch(query, schema, table)
            return [row["column_name"] for row in rows]
        except Exception as e:
            logger.error(f"Error getting primary key for {self.database}.{schema}.{table}: {e}")
            raise DatabaseError(f"Failed to get primary key: {e}") from e

    async def get_table_info(self, schema: str, table: str) -> TableInfo:
        """Get columns and primary key of a table."""
        columns = await self.get_columns(schema, table)
        primary_key = await self.get_primary_key(schema, table)
        return TableInfo(
            database=self.database,
            schema=schema,
            name=table,
            columns=columns,
            primary_key=primary_key,
        )
