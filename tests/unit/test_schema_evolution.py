"""
Tests for the live target schema and runtime change policy.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from tablesync.schema.evolution import (
    ChangeDecision,
    ChangeOperation,
    SchemaChange,
    TargetSchemaState,
)
from tablesync.schema.models import TargetSchema
from tablesync.schema.types import BIGINT, DATE, INT, SMALLINT, STRING, StringType


ORIGIN = "shop_1.public.orders_1"


def add(column, new_type):
    return SchemaChange(ORIGIN, ChangeOperation.ADD_COLUMN, column, new_type=new_type)


def alter(column, old_type, new_type):
    return SchemaChange(
        ORIGIN, ChangeOperation.ALTER_COLUMN_TYPE, column, new_type=new_type, old_type=old_type
    )


@pytest.fixture
def schema():
    return TargetSchema(
        columns={"id": INT, "note": StringType(10)}, primary_key=("id",), version=3
    )


class TestEvaluate:
    """Test the decision rules without applying anything."""

    def test_new_column_always_accepted(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(add("created", DATE))

        assert outcome.decision == ChangeDecision.APPLIED
        assert outcome.accepted
        assert outcome.schema.get_column("created") == DATE
        assert outcome.schema.version == 4

    def test_widening_alter_applied(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(alter("id", INT, BIGINT))

        assert outcome.decision == ChangeDecision.APPLIED
        assert outcome.schema.get_column("id") == BIGINT

    def test_lengthening_within_target_length_unchanged(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(alter("note", StringType(5), StringType(10)))

        assert outcome.decision == ChangeDecision.UNCHANGED

    def test_narrowing_alter_skipped(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(alter("id", BIGINT, INT))

        assert outcome.decision == ChangeDecision.SKIPPED
        assert not outcome.accepted
        assert outcome.schema is schema
        assert "cannot be widened" in outcome.reason

    def test_incomparable_alter_skipped(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(alter("id", INT, STRING))

        assert outcome.decision == ChangeDecision.SKIPPED

    def test_drop_skipped(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(SchemaChange(ORIGIN, ChangeOperation.DROP_COLUMN, "note"))

        assert outcome.decision == ChangeDecision.SKIPPED
        assert outcome.schema.has_column("note")

    def test_alter_without_old_type_uses_target(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(alter("id", None, BIGINT))

        assert outcome.decision == ChangeDecision.APPLIED

    def test_source_widening_already_covered(self):
        state = TargetSchemaState(TargetSchema(columns={"id": BIGINT}))

        outcome = state.evaluate(alter("id", SMALLINT, INT))

        assert outcome.decision == ChangeDecision.UNCHANGED
        assert outcome.schema.version == 1

    def test_add_existing_column_with_incompatible_type(self, schema):
        state = TargetSchemaState(schema)

        outcome = state.evaluate(add("id", DATE))

        assert outcome.decision == ChangeDecision.SKIPPED


class TestApply:
    """Test applying changes to the live schema."""

    @pytest.mark.asyncio
    async def test_apply_publishes_new_snapshot(self, schema):
        state = TargetSchemaState(schema)

        outcome = await state.apply(alter("id", INT, BIGINT))

        assert outcome.decision == ChangeDecision.APPLIED
        assert state.current.get_column("id") == BIGINT
        assert state.version == 4
        # the previous snapshot is untouched
        assert schema.get_column("id") == INT

    @pytest.mark.asyncio
    async def test_skipped_change_keeps_snapshot(self, schema):
        state = TargetSchemaState(schema)

        await state.apply(alter("id", BIGINT, INT))

        assert state.current is schema

    @pytest.mark.asyncio
    async def test_persist_hook_called_before_publish(self, schema):
        seen = []

        async def persist(change, new_schema):
            seen.append((change.column, new_schema.version, state.version))

        state = TargetSchemaState(schema, persist=persist)

        await state.apply(add("created", DATE))

        assert seen == [("created", 4, 3)]
        assert state.version == 4

    @pytest.mark.asyncio
    async def test_persist_failure_reported_as_skip(self, schema):
        persist = AsyncMock(side_effect=RuntimeError("catalog down"))
        state = TargetSchemaState(schema, persist=persist)

        outcome = await state.apply(add("created", DATE))

        assert outcome.decision == ChangeDecision.SKIPPED
        assert "catalog down" in outcome.reason
        assert state.current is schema

    @pytest.mark.asyncio
    async def test_persist_not_called_for_unchanged(self, schema):
        persist = AsyncMock()
        state = TargetSchemaState(schema, persist=persist)

        await state.apply(alter("note", StringType(5), StringType(8)))

        persist.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_changes_are_serialized(self, schema):
        active = 0
        max_active = 0

        async def persist(change, new_schema):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0)
            active -= 1

        state = TargetSchemaState(schema, persist=persist)

        outcomes = await asyncio.gather(
            *(state.apply(add(f"col_{i}", STRING)) for i in range(5))
        )

        assert max_active == 1
        assert all(o.decision == ChangeDecision.APPLIED for o in outcomes)
        assert state.version == 8
        assert all(state.current.has_column(f"col_{i}") for i in range(5))
