"""
Schema management package for tablesync.

This package provides:
- Column type model and widening rules
- Native type mapping for discovered columns
- Schema reconciliation across source tables
- Runtime schema evolution of the target table
"""

from .types import (
    ColumnType,
    TypeFamily,
    PrimitiveKind,
    IntegerType,
    FloatType,
    StringType,
    BinaryType,
    DecimalType,
    PrimitiveType,
)
from .lattice import can_widen, can_apply_change
from .native_types import to_column_type
from .models import (
    SourceSchema,
    UnifiedSchema,
    TargetSchema,
    TargetSchemaDraft,
    TableIdentifier,
)
from .reconciler import SchemaReconciler, ReconciliationPlan, PlanAction
from .evolution import (
    TargetSchemaState,
    SchemaChange,
    ChangeOperation,
    ChangeDecision,
    ChangeOutcome,
)

__all__ = [
    "ColumnType",
    "TypeFamily",
    "PrimitiveKind",
    "IntegerType",
    "FloatType",
    "StringType",
    "BinaryType",
    "DecimalType",
    "PrimitiveType",
    "can_widen",
    "can_apply_change",
    "to_column_type",
    "SourceSchema",
    "UnifiedSchema",
    "TargetSchema",
    "TargetSchemaDraft",
    "TableIdentifier",
    "SchemaReconciler",
    "ReconciliationPlan",
    "PlanAction",
    "TargetSchemaState",
    "SchemaChange",
    "ChangeOperation",
    "ChangeDecision",
    "ChangeOutcome",
]
