"""
Multi-source table sync job.

Runs the startup sequence (discover, merge, compare with or create the
target) and then keeps the target schema in step with runtime schema
changes from the sources.
"""

import logging
from typing import List, Optional

from .catalog import SchemaCatalog
from .config import TableSyncConfig
from .database.connection import ConnectionPool, DatabaseManager
from .database.discovery import SourceDiscovery
from .exceptions import SchemaIncompatibleError
from .listener import SchemaChangeListener
from .schema.evolution import SchemaChange, TargetSchemaState
from .schema.models import SourceSchema, TargetSchema
from .schema.reconciler import PlanAction, ReconciliationPlan, SchemaReconciler

logger = logging.getLogger(__name__)


class SyncTableJob:
    """
    Synchronizes all matched source tables into one target table.

    Usage::

        job = SyncTableJob(config)
        try:
            await job.run()
        finally:
            await job.close()
    """

    def __init__(self, config: TableSyncConfig):
        self.config = config
        self.reconciler = SchemaReconciler()
        self.source_manager = DatabaseManager(config.source.connection.to_connection_config())
        self.catalog_pool = ConnectionPool(config.catalog.connection.to_connection_config())
        self.catalog = SchemaCatalog(self.catalog_pool, config.catalog.schema_name)
        self.discovery = SourceDiscovery(
            self.source_manager,
            config.source.database_matcher(),
            config.source.table_matcher(),
            excluded_schemas=config.source.excluded_schemas,
            concurrency=config.source.discovery_concurrency,
        )
        self.databases: List[str] = []
        self.state: Optional[TargetSchemaState] = None
        self.listener: Optional[SchemaChangeListener] = None

    async def discover(self) -> List[SourceSchema]:
        """Discover all matched source tables and remember their databases."""
        tables = await self.discovery.discover_tables()
        self.databases = sorted({table.database for table in tables})
        return [table.to_source_schema() for table in tables]

    async def plan(self) -> ReconciliationPlan:
        """Work out what startup would do, without changing the catalog."""
        sources = await self.discover()

        await self.catalog_pool.initialize()
        await self.catalog.ensure_catalog()

        target = self.config.target
        existing = await self.catalog.get_table(target.identifier)
        return self.reconciler.plan(
            sources,
            existing,
            explicit_primary_key=target.primary_keys,
            explicit_partition_keys=target.partition_keys,
            extra_options=target.options,
        )

    async def prepare(self) -> TargetSchemaState:
        """
        Run the startup sequence and return the live target schema.

        Raises:
            SchemaIncompatibleError: If the existing target cannot hold the sources
        """
        identifier = self.config.target.identifier
        plan = await self.plan()

        if plan.action == PlanAction.INCOMPATIBLE:
            logger.error(
                f"Target table {identifier} is incompatible with the source tables: "
                f"{'; '.join(plan.reasons)}"
            )
            raise SchemaIncompatibleError(
                identifier.full_name,
                plan.existing.fields,
                plan.unified.fields,
                plan.reasons,
            )

        if plan.action == PlanAction.CREATE:
            schema = await self.catalog.create_table(identifier, plan.draft)
        else:
            schema = plan.existing
            logger.info(f"Target table {identifier} is compatible with the source tables")

        self.state = TargetSchemaState(schema, persist=self._persist)
        return self.state

    async def _persist(self, change: SchemaChange, schema: TargetSchema) -> None:
        await self.catalog.update_table(self.config.target.identifier, schema)

    async def run(self, channel: Optional[str] = None) -> None:
        """Prepare the target, then follow source schema changes until stopped."""
        state = await self.prepare()

        if not self.config.listener.enabled:
            logger.info("Schema change listener disabled, startup complete")
            return

        self.listener = SchemaChangeListener(
            self.source_manager.base_config,
            self.databases,
            self.discovery.database_matcher,
            self.discovery.table_matcher,
            state,
            self.config.target.identifier,
            catalog=self.catalog,
            channel=channel or self.config.listener.channel,
        )
        await self.listener.start()

    async def close(self) -> None:
        """Stop listening and close all connections."""
        if self.listener is not None:
            await self.listener.stop()
        await self.source_manager.close_all()
        await self.catalog_pool.close()
