"""
Exception classes for tablesync.
"""

from typing import Any, Dict, List, Optional


class TableSyncError(Exception):
    """Base exception for all tablesync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(TableSyncError):
    """Raised when there's an error in configuration."""

    pass


class SchemaIncompatibleError(ConfigurationError):
    """Raised when the existing target schema cannot hold the unified source schema."""

    def __init__(
        self,
        target: str,
        target_fields: List[str],
        source_fields: List[str],
        reasons: Optional[List[str]] = None,
    ) -> None:
        message = (
            f"Target schema and source schema are not compatible for '{target}'.\n"
            f"Target fields are: {target_fields}.\n"
            f"Source fields are: {source_fields}."
        )
        if reasons:
            message += "\n" + "\n".join(f"  - {r}" for r in reasons)
        super().__init__(message)
        self.target = target
        self.target_fields = target_fields
        self.source_fields = source_fields
        self.reasons = reasons or []


class DatabaseError(TableSyncError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class CatalogError(DatabaseError):
    """Raised when the schema catalog cannot be read or written."""

    pass


class ReconciliationError(TableSyncError):
    """Raised when source schemas cannot be reconciled into one target schema."""

    pass


class NoMatchingSourceError(ReconciliationError):
    """Raised when no source table satisfies the database and table predicates."""

    def __init__(
        self,
        database_pattern: Optional[str] = None,
        table_pattern: Optional[str] = None,
    ) -> None:
        details = {}
        if database_pattern is not None:
            details["database_pattern"] = database_pattern
        if table_pattern is not None:
            details["table_pattern"] = table_pattern
        super().__init__(
            "No table satisfies the given database name and table name", details
        )
        self.database_pattern = database_pattern
        self.table_pattern = table_pattern


class UnrecognizedNativeTypeError(ReconciliationError):
    """Raised when a source column has a native type with no ColumnType mapping."""

    def __init__(
        self,
        native_type: str,
        origin: Optional[str] = None,
        column: Optional[str] = None,
    ) -> None:
        message = f"Unrecognized native type '{native_type}'"
        if origin and column:
            message += f" for column '{column}' in table {origin}"
        elif column:
            message += f" for column '{column}'"
        super().__init__(message)
        self.native_type = native_type
        self.origin = origin
        self.column = column


class IncompatibleColumnTypeError(ReconciliationError):
    """Raised when two source tables declare mutually non-widenable types for a column."""

    def __init__(
        self,
        column: str,
        first_origin: str,
        first_type: Any,
        second_origin: str,
        second_type: Any,
    ) -> None:
        super().__init__(
            f"Column {column} have different types in table {first_origin} ({first_type}) "
            f"and table {second_origin} ({second_type})"
        )
        self.column = column
        self.first_origin = first_origin
        self.first_type = first_type
        self.second_origin = second_origin
        self.second_type = second_type


class UnknownPrimaryKeyColumnError(ReconciliationError):
    """Raised when an explicitly specified primary key column is not in the source tables."""

    def __init__(self, column: str) -> None:
        super().__init__(
            f"Specified primary key {column} does not exist in source tables"
        )
        self.column = column


class UnknownPartitionKeyColumnError(ReconciliationError):
    """Raised when a specified partition key column is not in the source tables."""

    def __init__(self, column: str) -> None:
        super().__init__(
            f"Specified partition key {column} does not exist in source tables"
        )
        self.column = column


class PrimaryKeyRequiredError(ReconciliationError):
    """Raised when no primary key was specified and none could be inferred."""

    def __init__(self) -> None:
        super().__init__(
            "Primary keys are not specified. "
            "Also, can't infer primary keys from source table schemas because "
            "source tables have no primary keys or have different primary keys."
        )


class ListenerError(TableSyncError):
    """Raised when there's an error with the schema change listener."""

    pass
