"""
Pytest configuration and shared fixtures for tablesync tests.

This module provides shared fixtures and utilities for testing all tablesync components.
"""

import os
import tempfile
from contextlib import asynccontextmanager
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from tablesync.config import TableSyncConfig
from tablesync.schema.models import SourceSchema, TargetSchema
from tablesync.schema.types import BIGINT, INT, STRING, StringType, DecimalType


# ============================================================================
# Test Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample configuration as loaded from YAML."""
    connection = {
        "host": "localhost",
        "port": 5432,
        "database": "postgres",
        "user": "test_user",
        "password": "test_password",
    }
    return {
        "source": {
            "connection": connection,
            "database_pattern": "shop_[0-9]+",
            "table_pattern": "orders_[0-9]+",
        },
        "target": {
            "database": "warehouse",
            "table": "orders",
            "primary_keys": ["id"],
            "partition_keys": ["region"],
            "options": {"bucket": "4"},
        },
        "catalog": {
            "connection": dict(connection, database="catalog"),
            "schema": "tablesync_catalog",
        },
    }


@pytest.fixture
def sample_config(sample_config_data) -> TableSyncConfig:
    """Sample tablesync configuration."""
    return TableSyncConfig(**sample_config_data)


@pytest.fixture
def temp_config_file(sample_config_data):
    """Temporary configuration file for testing."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(sample_config_data, f)
        path = f.name
    yield path
    os.unlink(path)


# ============================================================================
# Schema Fixtures
# ============================================================================

@pytest.fixture
def orders_1() -> SourceSchema:
    return SourceSchema(
        origin="shop_1.public.orders_1",
        columns={"id": INT, "amount": DecimalType(10, 2), "note": StringType(50)},
        primary_key=("id",),
    )


@pytest.fixture
def orders_2() -> SourceSchema:
    return SourceSchema(
        origin="shop_2.public.orders_2",
        columns={"id": BIGINT, "amount": DecimalType(12, 2), "region": STRING},
        primary_key=("id",),
    )


@pytest.fixture
def target_schema() -> TargetSchema:
    return TargetSchema(
        columns={"id": BIGINT, "amount": DecimalType(12, 2), "note": STRING},
        primary_key=("id",),
    )


# ============================================================================
# Database Test Fixtures
# ============================================================================

@pytest.fixture
def mock_database_connection():
    """Mock database connection for testing."""
    conn = AsyncMock()
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock()
    conn.fetchrow = AsyncMock()
    conn.fetchval = AsyncMock()
    return conn


@pytest.fixture
def mock_pool(mock_database_connection):
    """Mock ConnectionPool whose acquire() yields ``mock_database_connection``."""
    pool = MagicMock()
    pool.config = MagicMock()
    pool.config.database = "shop_1"
    pool.execute = AsyncMock()
    pool.fetch = AsyncMock()
    pool.fetchrow = AsyncMock()

    @asynccontextmanager
    async def acquire():
        yield mock_database_connection

    pool.acquire = acquire
    return pool
