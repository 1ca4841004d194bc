"""
Test suite for tablesync.

This package contains tests for all tablesync components:
- Unit tests for the schema model, widening rules and reconciliation
- Unit tests for discovery, catalog and listener against mocked databases
- CLI tests
"""
