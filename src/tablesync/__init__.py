"""
tablesync: schema reconciliation for multi-source table synchronization.

tablesync discovers every source table matched by name patterns across many
PostgreSQL databases, merges their schemas into one unified target schema,
and decides which runtime schema changes may widen the target.
"""

__version__ = "0.1.0"
__author__ = "tablesync Contributors"

from .config import TableSyncConfig
from .exceptions import (
    TableSyncError,
    ConfigurationError,
    DatabaseError,
    ReconciliationError,
    SchemaIncompatibleError,
)

__all__ = [
    "__version__",
    "TableSyncConfig",
    "TableSyncError",
    "ConfigurationError",
    "DatabaseError",
    "ReconciliationError",
    "SchemaIncompatibleError",
]
