"""
Schema catalog for tablesync.

Persists target table schemas and the log of runtime schema changes in
a dedicated PostgreSQL schema.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from .database.connection import ConnectionPool
from .exceptions import CatalogError, ConfigurationError
from .schema.evolution import ChangeOutcome
from .schema.models import TableIdentifier, TargetSchema, TargetSchemaDraft


logger = logging.getLogger(__name__)


DEFAULT_CATALOG_SCHEMA = "tablesync_catalog"

_IDENTIFIER = re.compile(r"[a-z_][a-z0-9_]*")


class SchemaCatalog:
    """Catalog of target table schemas stored in PostgreSQL."""

    def __init__(self, pool: ConnectionPool, schema: str = DEFAULT_CATALOG_SCHEMA):
        if not _IDENTIFIER.fullmatch(schema):
            raise ConfigurationError(f"Invalid catalog schema name: {schema}")

        self.pool = pool
        self.schema = schema

        self.required_tables = {
            "table_schemas": self._get_table_schemas_ddl(),
            "schema_change_log": self._get_schema_change_log_ddl(),
        }

    async def ensure_catalog(self) -> None:
        """Create the catalog schema and tables if they don't exist."""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
                for table_name, ddl in self.required_tables.items():
                    await conn.execute(ddl)
                    logger.debug(f"Ensured catalog table {self.schema}.{table_name}")
        except Exception as e:
            logger.error(f"Catalog setup failed: {e}")
            raise CatalogError(f"Failed to set up catalog schema {self.schema}: {e}") from e

    async def get_table(self, identifier: TableIdentifier) -> Optional[TargetSchema]:
        """Look up the persisted schema of a target table, or None if it doesn't exist."""
        query = f"""
            SELECT columns, primary_key, partition_keys, options, schema_version
            FROM {self.schema}.table_schemas
            WHERE database_name = $1 AND table_name = $2
        """

        try:
            row = await self.pool.fetchrow(query, identifier.database, identifier.table)
        except Exception as e:
            logger.error(f"Error reading catalog entry for {identifier}: {e}")
            raise CatalogError(f"Failed to read target schema for {identifier}: {e}") from e

        if row is None:
            return None
        return self._row_to_schema(row)

    async def create_table(
        self, identifier: TableIdentifier, draft: TargetSchemaDraft
    ) -> TargetSchema:
        """Persist a new target table schema."""
        schema = TargetSchema.from_draft(draft)
        query = f"""
            INSERT INTO {self.schema}.table_schemas
                (database_name, table_name, columns, primary_key, partition_keys,
                 options, schema_version)
            VALUES ($1, $2, $3::jsonb, $4::text[], $5::text[], $6::jsonb, $7)
            ON CONFLICT (database_name, table_name) DO NOTHING
        """

        try:
            status = await self.pool.execute(
                query,
                identifier.database,
                identifier.table,
                json.dumps(schema.columns_to_json()),
                list(schema.primary_key),
                list(schema.partition_keys),
                json.dumps(dict(schema.options)),
                schema.version,
            )
        except Exception as e:
            logger.error(f"Error creating catalog entry for {identifier}: {e}")
            raise CatalogError(f"Failed to create target table {identifier}: {e}") from e

        if status.endswith(" 0"):
            raise CatalogError(f"Target table {identifier} already exists")

        logger.info(f"Created target table {identifier} with {len(schema.columns)} column(s)")
        return schema

    async def update_table(self, identifier: TableIdentifier, schema: TargetSchema) -> None:
        """
        Store the next version of a target schema.

        The row is only updated if it is still at the previous version.
        """
        query = f"""
            UPDATE {self.schema}.table_schemas
            SET columns = $3::jsonb, schema_version = $4, updated_at = NOW()
            WHERE database_name = $1 AND table_name = $2 AND schema_version = $5
        """

        try:
            status = await self.pool.execute(
                query,
                identifier.database,
                identifier.table,
                json.dumps(schema.columns_to_json()),
                schema.version,
                schema.version - 1,
            )
        except Exception as e:
            logger.error(f"Error updating catalog entry for {identifier}: {e}")
            raise CatalogError(f"Failed to update target table {identifier}: {e}") from e

        if status.endswith(" 0"):
            raise CatalogError(
                f"Target table {identifier} is not at version {schema.version - 1}",
                {"expected_version": schema.version - 1},
            )

    async def log_change(self, identifier: TableIdentifier, outcome: ChangeOutcome) -> None:
        """Record the decision taken for a runtime schema change."""
        change = outcome.change
        query = f"""
            INSERT INTO {self.schema}.schema_change_log
                (database_name, table_name, origin, operation, column_name,
                 old_type, new_type, decision, reason, schema_version)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7::jsonb, $8, $9, $10)
        """

        try:
            await self.pool.execute(
                query,
                identifier.database,
                identifier.table,
                change.origin,
                change.operation.value,
                change.column,
                json.dumps(change.old_type.to_dict()) if change.old_type else None,
                json.dumps(change.new_type.to_dict()) if change.new_type else None,
                outcome.decision.value,
                outcome.reason,
                outcome.schema.version,
            )
        except Exception as e:
            # best effort
            logger.warning(f"Could not record schema change for {identifier}: {e}")

    def _row_to_schema(self, row: Any) -> TargetSchema:
        columns = row["columns"]
        if isinstance(columns, str):
            columns = json.loads(columns)
        options: Dict[str, str] = row["options"] or {}
        if isinstance(options, str):
            options = json.loads(options)

        try:
            return TargetSchema(
                columns=TargetSchema.columns_from_json(columns),
                primary_key=tuple(row["primary_key"] or ()),
                partition_keys=tuple(row["partition_keys"] or ()),
                options=options,
                version=row["schema_version"],
            )
        except (KeyError, ValueError) as e:
            raise CatalogError(f"Corrupt catalog entry: {e}") from e

    # DDL definitions for catalog tables

    def _get_table_schemas_ddl(self) -> str:
        """Get DDL for the target table schema registry."""
        return f"""
        CREATE TABLE IF NOT EXISTS {self.schema}.table_schemas (
            id SERIAL PRIMARY KEY,
            database_name VARCHAR(255) NOT NULL,
            table_name VARCHAR(255) NOT NULL,
            columns JSONB NOT NULL,
            primary_key TEXT[] NOT NULL DEFAULT '{{}}',
            partition_keys TEXT[] NOT NULL DEFAULT '{{}}',
            options JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            schema_version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW(),

            CONSTRAINT unique_target_table UNIQUE(database_name, table_name)
        );
        """

    def _get_schema_change_log_ddl(self) -> str:
        """Get DDL for the runtime schema change log."""
        return f"""
        CREATE TABLE IF NOT EXISTS {self.schema}.schema_change_log (
            id SERIAL PRIMARY KEY,
            occurred_at TIMESTAMP DEFAULT NOW(),
            database_name VARCHAR(255) NOT NULL,
            table_name VARCHAR(255) NOT NULL,
            origin VARCHAR(767) NOT NULL,
            operation VARCHAR(50) NOT NULL,
            column_name VARCHAR(255) NOT NULL,
            old_type JSONB,
            new_type JSONB,
            decision VARCHAR(20) NOT NULL,
            reason TEXT,
            schema_version INTEGER,

            CONSTRAINT valid_operation CHECK (operation IN ('add_column', 'alter_column_type', 'drop_column')),
            CONSTRAINT valid_decision CHECK (decision IN ('applied', 'unchanged', 'skipped'))
        );

        CREATE INDEX IF NOT EXISTS idx_schema_change_log_table
        ON {self.schema}.schema_change_log(database_name, table_name, occurred_at DESC);
        """
