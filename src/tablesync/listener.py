"""
PostgreSQL NOTIFY/LISTEN service for source schema changes.

Each matched source database publishes schema change notifications on a
channel. Notifications are queued and handled one at a time, in arrival
order, against the live target schema.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import asyncpg

from .catalog import SchemaCatalog
from .database.connection import ConnectionConfig
from .database.matchers import Matcher
from .exceptions import ListenerError, DatabaseConnectionError, UnrecognizedNativeTypeError
from .schema.evolution import (
    ChangeOperation,
    ChangeOutcome,
    SchemaChange,
    TargetSchemaState,
)
from .schema.models import TableIdentifier
from .schema.native_types import to_column_type
from .schema.types import ColumnType

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("database", "schema", "table", "operation", "column")


class SchemaChangeListener:
    """
    Listens for schema change notifications from the source databases.

    Payloads are JSON objects::

        {"database": "shop_1", "schema": "public", "table": "orders_1",
         "operation": "alter_column_type", "column": "amount",
         "old_type": {"type": "integer"},
         "new_type": {"type": "bigint"}}

    Rejected or malformed changes are logged and skipped; they never
    stop the listener.
    """

    def __init__(
        self,
        connection_config: ConnectionConfig,
        databases: List[str],
        database_matcher: Matcher,
        table_matcher: Matcher,
        state: TargetSchemaState,
        target: TableIdentifier,
        catalog: Optional[SchemaCatalog] = None,
        channel: str = "tablesync_schema_changes",
    ):
        self.connection_config = connection_config
        self.databases = list(databases)
        self.database_matcher = database_matcher
        self.table_matcher = table_matcher
        self.state = state
        self.target = target
        self.catalog = catalog
        self.channel = channel
        self.listeners: Dict[str, asyncpg.Connection] = {}
        self.running = False
        self._events: "asyncio.Queue[str]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start listening and keep running until stopped."""
        logger.info(
            f"Starting schema change listener on channel '{self.channel}' "
            f"for {len(self.databases)} database(s)"
        )

        try:
            for database in self.databases:
                await self._connect(database)

            self.running = True
            self._consumer = asyncio.create_task(self._consume())
            logger.info("Schema change listener started")

            await self._run_forever()

        except Exception as e:
            logger.error(f"Failed to start schema change listener: {e}")
            await self.stop()
            raise ListenerError(f"Listener startup failed: {e}") from e

    async def stop(self) -> None:
        """Stop the listener and close connections."""
        logger.info("Stopping schema change listener...")
        self.running = False

        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        for database, conn in self.listeners.items():
            try:
                if not conn.is_closed():
                    await conn.close()
                logger.debug(f"Closed listener connection for database: {database}")
            except Exception as e:
                logger.warning(f"Error closing listener for {database}: {e}")

        self.listeners.clear()
        logger.info("Schema change listener stopped")

    async def _connect(self, database: str) -> None:
        """Open a dedicated listening connection to ``database``."""
        config = self.connection_config.for_database(database)
        try:
            conn = await asyncpg.connect(**config.to_connection_kwargs())
            await conn.add_listener(self.channel, self._handle_notification)
        except Exception as e:
            logger.error(f"Failed to set up listener for database {database}: {e}")
            raise DatabaseConnectionError(f"Database listener setup failed: {e}") from e

        self.listeners[database] = conn
        logger.info(f"Started listener for database: {database}")

    def _handle_notification(
        self, connection: asyncpg.Connection, pid: int, channel: str, payload: str
    ) -> None:
        """asyncpg callback: queue the payload for in-order processing."""
        self._events.put_nowait(payload)

    async def _consume(self) -> None:
        while True:
            payload = await self._events.get()
            try:
                await self.process_payload(payload)
            except Exception as e:
                logger.error(f"Error handling schema change notification: {e}")
            finally:
                self._events.task_done()

    async def process_payload(self, payload: str) -> Optional[ChangeOutcome]:
        """
        Handle one notification payload.

        Returns the outcome, or None if the payload was ignored.
        """
        try:
            event = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in notification payload: {payload}, error: {e}")
            return None

        if not isinstance(event, dict):
            logger.warning(f"Notification payload is not an object: {payload}")
            return None

        for name in REQUIRED_FIELDS:
            if name not in event:
                logger.warning(f"Missing required field '{name}' in notification: {payload}")
                return None

        if not (
            self.database_matcher.matches(event["database"])
            and self.table_matcher.matches(event["table"])
        ):
            logger.debug(
                f"Ignoring change for unmatched table "
                f"{event['database']}.{event['schema']}.{event['table']}"
            )
            return None

        change = self._parse_change(event)
        if change is None:
            return None

        outcome = await self.state.apply(change)
        if self.catalog is not None:
            await self.catalog.log_change(self.target, outcome)
        return outcome

    def _parse_change(self, event: Dict[str, Any]) -> Optional[SchemaChange]:
        """Build a SchemaChange from a validated event, or None if it can't be understood."""
        origin = f"{event['database']}.{event['schema']}.{event['table']}"
        column = event["column"]

        try:
            operation = ChangeOperation(event["operation"])
        except ValueError:
            logger.warning(f"Unknown schema change operation '{event['operation']}' from {origin}")
            return None

        try:
            old_type = self._parse_type(event.get("old_type"), origin, column)
            new_type = self._parse_type(event.get("new_type"), origin, column)
        except UnrecognizedNativeTypeError as e:
            logger.warning(f"Skipping schema change from {origin}: {e}")
            return None

        if operation != ChangeOperation.DROP_COLUMN and new_type is None:
            logger.warning(f"Schema change {operation.value} from {origin} has no new type")
            return None

        return SchemaChange(
            origin=origin,
            operation=operation,
            column=column,
            new_type=new_type,
            old_type=old_type,
        )

    @staticmethod
    def _parse_type(
        data: Optional[Dict[str, Any]], origin: str, column: str
    ) -> Optional[ColumnType]:
        if data is None:
            return None
        if not isinstance(data, dict) or "type" not in data:
            raise UnrecognizedNativeTypeError(str(data), origin=origin, column=column)
        for key in ("precision", "scale"):
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise UnrecognizedNativeTypeError(str(data), origin=origin, column=column)
        return to_column_type(
            data["type"],
            data.get("precision"),
            data.get("scale"),
            origin=origin,
            column=column,
        )

    async def _run_forever(self) -> None:
        """Keep the service running and handle reconnections."""
        while self.running:
            try:
                for database, conn in list(self.listeners.items()):
                    if conn.is_closed():
                        logger.warning(
                            f"Listener connection to {database} is closed, attempting reconnect..."
                        )
                        await self._reconnect_database(database)

                await asyncio.sleep(1)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in listener loop: {e}")
                await asyncio.sleep(5)

    async def _reconnect_database(self, database: str) -> None:
        """Reconnect the listener of a specific database."""
        try:
            await self._connect(database)
            logger.info(f"Reconnected to database: {database}")
        except DatabaseConnectionError as e:
            logger.error(f"Failed to reconnect to database {database}: {e}")
