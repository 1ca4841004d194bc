"""
Runtime schema evolution for tablesync.

Holds the live target schema while synchronization runs and decides,
per reported source change, whether the target may follow it.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .lattice import can_apply_change, can_widen
from .models import TargetSchema
from .types import ColumnType


logger = logging.getLogger(__name__)


class ChangeOperation(str, Enum):
    """Kinds of schema change a source can report."""

    ADD_COLUMN = "add_column"
    ALTER_COLUMN_TYPE = "alter_column_type"
    DROP_COLUMN = "drop_column"


class ChangeDecision(str, Enum):
    """What happened to a reported change."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"  # accepted, target already wide enough
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SchemaChange:
    """A schema change reported by one source table."""

    origin: str
    operation: ChangeOperation
    column: str
    new_type: Optional[ColumnType] = None
    old_type: Optional[ColumnType] = None

    def __str__(self) -> str:
        if self.operation == ChangeOperation.ADD_COLUMN:
            return f"ADD COLUMN {self.column} {self.new_type} ({self.origin})"
        if self.operation == ChangeOperation.ALTER_COLUMN_TYPE:
            return (
                f"ALTER COLUMN {self.column} {self.old_type} -> {self.new_type} "
                f"({self.origin})"
            )
        return f"DROP COLUMN {self.column} ({self.origin})"


@dataclass(frozen=True)
class ChangeOutcome:
    """Result of offering a change to the live target schema."""

    change: SchemaChange
    decision: ChangeDecision
    schema: TargetSchema
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.decision != ChangeDecision.SKIPPED


PersistHook = Callable[[SchemaChange, TargetSchema], Awaitable[None]]


class TargetSchemaState:
    """
    Versioned, single-writer holder of the live target schema.

    ``current`` always returns a complete immutable snapshot. Changes are
    serialized by a lock; the optional ``persist`` hook runs under that
    lock and the new snapshot is published only after it succeeds.
    """

    def __init__(self, schema: TargetSchema, persist: Optional[PersistHook] = None):
        self._schema = schema
        self._persist = persist
        self._lock = asyncio.Lock()

    @property
    def current(self) -> TargetSchema:
        return self._schema

    @property
    def version(self) -> int:
        return self._schema.version

    def evaluate(self, change: SchemaChange) -> ChangeOutcome:
        """Decide what ``change`` would do to the current schema, without applying it."""
        schema = self._schema

        if change.operation == ChangeOperation.DROP_COLUMN:
            return self._skip(change, schema, "column removal is not propagated")

        if change.new_type is None:
            return self._skip(change, schema, "change carries no new type")

        current_type = schema.get_column(change.column)

        if change.operation == ChangeOperation.ALTER_COLUMN_TYPE:
            old_type = change.old_type or current_type
            if old_type is None:
                return self._skip(change, schema, "old type is unknown")
            if not can_apply_change(old_type, change.new_type):
                return self._skip(
                    change,
                    schema,
                    f"{old_type} cannot be widened to {change.new_type}",
                )

        if current_type is None:
            return ChangeOutcome(
                change=change,
                decision=ChangeDecision.APPLIED,
                schema=schema.with_column(change.column, change.new_type),
            )

        if can_widen(change.new_type, current_type):
            return ChangeOutcome(
                change=change, decision=ChangeDecision.UNCHANGED, schema=schema
            )

        if can_widen(current_type, change.new_type):
            return ChangeOutcome(
                change=change,
                decision=ChangeDecision.APPLIED,
                schema=schema.with_column(change.column, change.new_type),
            )

        return self._skip(
            change,
            schema,
            f"target column is {current_type}, incompatible with {change.new_type}",
        )

    async def apply(self, change: SchemaChange) -> ChangeOutcome:
        """
        Offer a change to the live schema.

        Never raises for a rejected change: rejections come back as a
        SKIPPED outcome so the change stream keeps flowing.
        """
        async with self._lock:
            outcome = self.evaluate(change)

            if outcome.decision != ChangeDecision.APPLIED:
                if outcome.decision == ChangeDecision.SKIPPED:
                    logger.warning(f"Skipping schema change {change}: {outcome.reason}")
                else:
                    logger.debug(f"Schema change {change} needs no target update")
                return outcome

            if self._persist is not None:
                try:
                    await self._persist(change, outcome.schema)
                except Exception as e:
                    logger.error(f"Failed to persist schema change {change}: {e}")
                    return self._skip(change, self._schema, f"persist failed: {e}")

            self._schema = outcome.schema
            logger.info(
                f"Applied schema change {change}, target schema now at "
                f"version {self._schema.version}"
            )
            return outcome

    @staticmethod
    def _skip(change: SchemaChange, schema: TargetSchema, reason: str) -> ChangeOutcome:
        return ChangeOutcome(
            change=change, decision=ChangeDecision.SKIPPED, schema=schema, reason=reason
        )
