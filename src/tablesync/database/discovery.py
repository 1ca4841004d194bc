"""
Source table discovery for tablesync.

Enumerates every database and table on the source server whose names
match the configured matchers and reads their schemas.
"""

import asyncio
import logging
from typing import List, Sequence, Tuple

from .connection import DatabaseManager
from .introspection import DEFAULT_EXCLUDED_SCHEMAS, SourceIntrospector, TableInfo
from .matchers import Matcher
from ..exceptions import NoMatchingSourceError
from ..schema.models import SourceSchema


logger = logging.getLogger(__name__)


class SourceDiscovery:
    """
    Discovers source tables and produces one SourceSchema per table.

    Databases are listed through the maintenance database of
    ``manager.base_config``; each matched database gets its own pool.
    Per-table metadata reads are independent and run concurrently.
    """

    def __init__(
        self,
        manager: DatabaseManager,
        database_matcher: Matcher,
        table_matcher: Matcher,
        excluded_schemas: Sequence[str] = DEFAULT_EXCLUDED_SCHEMAS,
        concurrency: int = 8,
    ):
        self.manager = manager
        self.database_matcher = database_matcher
        self.table_matcher = table_matcher
        self.excluded_schemas = tuple(excluded_schemas)
        self.concurrency = max(1, concurrency)

    async def find_databases(self) -> List[str]:
        """Names of all source databases selected by the database matcher."""
        maintenance_db = self.manager.base_config.database
        pool = await self.manager.get_pool(maintenance_db)
        databases = await SourceIntrospector(pool).list_databases()
        matched = [name for name in databases if self.database_matcher.matches(name)]
        logger.debug(f"Databases matching {self.database_matcher!r}: {matched}")
        return matched

    async def find_tables(self) -> List[Tuple[str, str, str]]:
        """All ``(database, schema, table)`` triples selected by both matchers."""
        tables = []
        for database in await self.find_databases():
            pool = await self.manager.get_pool(database)
            introspector = SourceIntrospector(pool)
            for schema, table in await introspector.list_tables(self.excluded_schemas):
                if self.table_matcher.matches(table):
                    tables.append((database, schema, table))
        return tables

    async def discover_tables(self) -> List[TableInfo]:
        """
        Read raw metadata for every matched table.

        Raises:
            NoMatchingSourceError: If no table matched
        """
        targets = await self.find_tables()
        if not targets:
            raise NoMatchingSourceError(
                self.database_matcher.pattern, self.table_matcher.pattern
            )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def read_table(database: str, schema: str, table: str) -> TableInfo:
            async with semaphore:
                pool = await self.manager.get_pool(database)
                return await SourceIntrospector(pool).get_table_info(schema, table)

        # gather keeps input order, so results stay sorted by database/schema/table
        tables = await asyncio.gather(*(read_table(*t) for t in targets))
        logger.info(f"Discovered {len(tables)} source table(s)")
        return list(tables)

    async def discover(self) -> List[SourceSchema]:
        """
        Discover all matched tables and translate them into SourceSchemas.

        Raises:
            NoMatchingSourceError: If no table matched
            UnrecognizedNativeTypeError: If a column type cannot be mapped
        """
        return [table.to_source_schema() for table in await self.discover_tables()]
