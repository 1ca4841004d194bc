"""
Schema reconciliation core logic for tablesync.

Folds the schemas of every matched source table into one unified
schema, builds a fresh target schema from it, and checks it against a
target schema that already exists.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import (
    IncompatibleColumnTypeError,
    NoMatchingSourceError,
    PrimaryKeyRequiredError,
    UnknownPartitionKeyColumnError,
    UnknownPrimaryKeyColumnError,
)
from .lattice import can_apply_change, can_widen
from .models import SourceSchema, TargetSchema, TargetSchemaDraft, UnifiedSchema
from .types import ColumnType


logger = logging.getLogger(__name__)


class PlanAction(str, Enum):
    """What startup has to do with the target table."""

    CREATE = "create"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


@dataclass
class ReconciliationPlan:
    """Outcome of reconciling the sources against the (optional) target."""

    action: PlanAction
    unified: UnifiedSchema
    sources: List[SourceSchema]
    draft: Optional[TargetSchemaDraft] = None
    existing: Optional[TargetSchema] = None
    reasons: List[str] = field(default_factory=list)

    @property
    def is_compatible(self) -> bool:
        return self.action != PlanAction.INCOMPATIBLE


def _keep_on_tie(old_type: ColumnType, new_type: ColumnType) -> ColumnType:
    """Pick between two distinct types that widen into each other."""
    # Only same-length fixed/variable strings or binaries get here.
    if getattr(old_type, "fixed", False) and not getattr(new_type, "fixed", False):
        return new_type
    return old_type


class SchemaReconciler:
    """
    Reconciles source schemas into a unified target schema.

    The reconciler holds no state; every method is a pure computation
    over in-memory schemas.
    """

    def combine(self, acc: UnifiedSchema, next_schema: SourceSchema) -> UnifiedSchema:
        """
        Fold one more source schema into the accumulated unified schema.

        Every type is checked against all types seen so far for the
        column, not only the one currently chosen, so whether a set of
        sources conflicts does not depend on the order they are folded in.

        Raises:
            IncompatibleColumnTypeError: If a column has mutually
                non-widenable types in two sources
        """
        columns: Dict[str, ColumnType] = dict(acc.columns)
        origins: Dict[str, str] = dict(acc.origins)
        seen: Dict[str, Tuple[Tuple[str, ColumnType], ...]] = dict(acc.seen)

        for name, new_type in next_schema.columns.items():
            if name not in columns:
                columns[name] = new_type
                origins[name] = next_schema.origin
                seen[name] = ((next_schema.origin, new_type),)
                continue

            history = seen.get(name) or ((origins.get(name, "<unknown>"), columns[name]),)
            for seen_origin, seen_type in history:
                if seen_type == new_type:
                    continue
                if not can_widen(seen_type, new_type) and not can_widen(new_type, seen_type):
                    raise IncompatibleColumnTypeError(
                        column=name,
                        first_origin=seen_origin,
                        first_type=seen_type,
                        second_origin=next_schema.origin,
                        second_type=new_type,
                    )
            if all(seen_type != new_type for _, seen_type in history):
                history = history + ((next_schema.origin, new_type),)
            seen[name] = history

            old_type = columns[name]
            if old_type == new_type:
                continue

            widens_up = can_widen(old_type, new_type)
            widens_down = can_widen(new_type, old_type)

            if widens_up and widens_down:
                chosen = _keep_on_tie(old_type, new_type)
                if chosen is new_type:
                    columns[name] = new_type
                    origins[name] = next_schema.origin
            elif widens_up:
                logger.debug(
                    f"Widening column {name} from {old_type} to {new_type} "
                    f"({next_schema.origin})"
                )
                columns[name] = new_type
                origins[name] = next_schema.origin

        if acc.primary_key != next_schema.primary_key:
            primary_key = ()
        else:
            primary_key = acc.primary_key

        return UnifiedSchema(
            columns=columns, primary_key=primary_key, origins=origins, seen=seen
        )

    def merge(self, schemas: Sequence[SourceSchema]) -> UnifiedSchema:
        """
        Merge all source schemas into one unified schema.

        A primary key is carried forward only if every source declares
        the same one; any disagreement leaves it undetermined.

        Raises:
            NoMatchingSourceError: If ``schemas`` is empty
            IncompatibleColumnTypeError: On a hard type conflict
        """
        if not schemas:
            raise NoMatchingSourceError()

        unified = UnifiedSchema.from_source(schemas[0])
        for schema in schemas[1:]:
            unified = self.combine(unified, schema)

        logger.info(
            f"Merged {len(schemas)} source schema(s) into {len(unified.columns)} "
            f"column(s), primary key: {list(unified.primary_key) or 'undetermined'}"
        )
        return unified

    def build_target(
        self,
        unified: UnifiedSchema,
        explicit_primary_key: Sequence[str] = (),
        explicit_partition_keys: Sequence[str] = (),
        extra_options: Optional[Mapping[str, str]] = None,
    ) -> TargetSchemaDraft:
        """
        Build the schema of a target table that does not exist yet.

        Raises:
            UnknownPrimaryKeyColumnError: If an explicit key column is missing
            UnknownPartitionKeyColumnError: If a partition column is missing
            PrimaryKeyRequiredError: If no key was given or inferred
        """
        if explicit_primary_key:
            for name in explicit_primary_key:
                if name not in unified.columns:
                    raise UnknownPrimaryKeyColumnError(name)
            primary_key = tuple(explicit_primary_key)
        elif unified.primary_key:
            primary_key = unified.primary_key
        else:
            raise PrimaryKeyRequiredError()

        for name in explicit_partition_keys:
            if name not in unified.columns:
                raise UnknownPartitionKeyColumnError(name)

        return TargetSchemaDraft(
            columns=unified.columns,
            primary_key=primary_key,
            partition_keys=tuple(explicit_partition_keys),
            options=dict(extra_options or {}),
        )

    def describe_incompatibilities(
        self, existing: TargetSchema, unified: UnifiedSchema
    ) -> List[str]:
        """List why ``existing`` cannot hold ``unified``; empty when it can."""
        reasons = []
        for name, column_type in unified.columns.items():
            existing_type = existing.get_column(name)
            if existing_type is None:
                reasons.append(f"column {name} is missing from the target")
            elif not can_widen(column_type, existing_type):
                reasons.append(
                    f"column {name} is {existing_type} in the target "
                    f"but sources require {column_type}"
                )
        return reasons

    def is_compatible(self, existing: TargetSchema, unified: UnifiedSchema) -> bool:
        """Check that every unified column fits into the existing target column."""
        return not self.describe_incompatibilities(existing, unified)

    def can_apply_change(self, old_type: ColumnType, new_type: ColumnType) -> bool:
        return can_apply_change(old_type, new_type)

    def plan(
        self,
        sources: Sequence[SourceSchema],
        existing: Optional[TargetSchema] = None,
        explicit_primary_key: Sequence[str] = (),
        explicit_partition_keys: Sequence[str] = (),
        extra_options: Optional[Mapping[str, str]] = None,
    ) -> ReconciliationPlan:
        """
        Merge the sources and decide what to do with the target table.

        Hard errors (conflicts, missing keys) are raised; an existing
        target that is too narrow is reported through the plan.
        """
        unified = self.merge(sources)

        if existing is None:
            draft = self.build_target(
                unified, explicit_primary_key, explicit_partition_keys, extra_options
            )
            return ReconciliationPlan(
                action=PlanAction.CREATE,
                unified=unified,
                sources=list(sources),
                draft=draft,
            )

        reasons = self.describe_incompatibilities(existing, unified)
        return ReconciliationPlan(
            action=PlanAction.INCOMPATIBLE if reasons else PlanAction.COMPATIBLE,
            unified=unified,
            sources=list(sources),
            existing=existing,
            reasons=reasons,
        )
