"""
Database integration package for tablesync.

This package provides:
- Async PostgreSQL connection pooling
- Source schema introspection
- Name matchers for source selection
- Source table discovery
"""

from .connection import ConnectionConfig, ConnectionPool, DatabaseManager
from .introspection import SourceIntrospector, ColumnInfo, TableInfo
from .matchers import Matcher, RegexMatcher, GlobMatcher, ExactMatcher, create_matcher
from .discovery import SourceDiscovery

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
    "DatabaseManager",
    "SourceIntrospector",
    "ColumnInfo",
    "TableInfo",
    "Matcher",
    "RegexMatcher",
    "GlobMatcher",
    "ExactMatcher",
    "create_matcher",
    "SourceDiscovery",
]
