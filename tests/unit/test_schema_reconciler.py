"""
Tests for tablesync.schema.reconciler module.
"""

import itertools

import pytest

from tablesync.exceptions import (
    IncompatibleColumnTypeError,
    NoMatchingSourceError,
    PrimaryKeyRequiredError,
    UnknownPartitionKeyColumnError,
    UnknownPrimaryKeyColumnError,
)
from tablesync.schema.models import SourceSchema, TargetSchema, UnifiedSchema
from tablesync.schema.reconciler import PlanAction, SchemaReconciler
from tablesync.schema.types import (
    BIGINT,
    DATE,
    INT,
    STRING,
    BinaryType,
    DecimalType,
    StringType,
)


def source(origin, columns, primary_key=()):
    return SourceSchema(origin=origin, columns=columns, primary_key=primary_key)


@pytest.fixture
def reconciler():
    return SchemaReconciler()


class TestMerge:
    """Test folding source schemas together."""

    def test_single_source_unchanged(self, reconciler, orders_1):
        unified = reconciler.merge([orders_1])

        assert dict(unified.columns) == dict(orders_1.columns)
        assert unified.primary_key == ("id",)
        assert list(unified.columns) == ["id", "amount", "note"]

    def test_wider_type_wins(self, reconciler):
        narrow = source("db.public.t1", {"a": INT})
        wide = source("db.public.t2", {"a": BIGINT})

        assert dict(reconciler.merge([narrow, wide]).columns) == {"a": BIGINT}
        assert dict(reconciler.merge([wide, narrow]).columns) == {"a": BIGINT}

    def test_origin_tracks_chosen_type(self, reconciler):
        narrow = source("db.public.t1", {"a": INT})
        wide = source("db.public.t2", {"a": BIGINT})

        assert reconciler.merge([narrow, wide]).origins["a"] == "db.public.t2"
        assert reconciler.merge([wide, narrow]).origins["a"] == "db.public.t2"

    def test_string_and_binary_conflict(self, reconciler):
        first = source("db.public.t1", {"a": StringType(10)})
        second = source("db.public.t2", {"a": BinaryType(10)})

        with pytest.raises(IncompatibleColumnTypeError) as exc_info:
            reconciler.merge([first, second])

        error = exc_info.value
        assert error.column == "a"
        assert error.first_origin == "db.public.t1"
        assert error.second_origin == "db.public.t2"
        assert "VARCHAR(10)" in str(error)
        assert "VARBINARY(10)" in str(error)

    def test_decimal_conflict(self, reconciler):
        first = source("db.public.t1", {"a": DecimalType(10, 4)})
        second = source("db.public.t2", {"a": DecimalType(12, 2)})

        with pytest.raises(IncompatibleColumnTypeError):
            reconciler.merge([first, second])

    def test_conflict_fails_even_for_single_dissenting_source(self, reconciler):
        sources = [source(f"db.public.t{i}", {"a": INT}) for i in range(5)]
        sources.append(source("db.public.odd", {"a": DATE}))

        with pytest.raises(IncompatibleColumnTypeError):
            reconciler.merge(sources)

    def test_union_of_columns_keeps_first_seen_order(self, reconciler, orders_1, orders_2):
        unified = reconciler.merge([orders_1, orders_2])

        assert list(unified.columns) == ["id", "amount", "note", "region"]
        assert unified.columns["id"] == BIGINT
        assert unified.columns["amount"] == DecimalType(12, 2)
        assert unified.origins["note"] == orders_1.origin
        assert unified.origins["region"] == orders_2.origin

    def test_differing_primary_keys_collapse(self, reconciler):
        first = source("db.public.t1", {"id": INT, "ts": DATE}, ("id",))
        second = source("db.public.t2", {"id": INT, "ts": DATE}, ("id", "ts"))

        unified = reconciler.merge([first, second])

        assert unified.primary_key == ()
        assert not unified.has_primary_key

    def test_identical_primary_keys_survive(self, reconciler):
        first = source("db.public.t1", {"id": INT}, ("id",))
        second = source("db.public.t2", {"id": INT}, ("id",))

        assert reconciler.merge([first, second]).primary_key == ("id",)

    def test_collapsed_primary_key_stays_collapsed(self, reconciler):
        schemas = [
            source("db.public.t1", {"id": INT}, ("id",)),
            source("db.public.t2", {"id": INT}, ()),
            source("db.public.t3", {"id": INT}, ("id",)),
        ]

        assert reconciler.merge(schemas).primary_key == ()

    def test_empty_input_fails(self, reconciler):
        with pytest.raises(NoMatchingSourceError):
            reconciler.merge([])

    def test_result_independent_of_order(self, reconciler):
        schemas = [
            source("db.public.t1", {"a": INT, "s": StringType(10, fixed=True)}, ("a",)),
            source("db.public.t2", {"a": BIGINT, "s": StringType(10)}, ("a",)),
            source("db.public.t3", {"a": INT, "s": StringType(5), "d": DecimalType(5, 2)}, ("a",)),
            source("db.public.t4", {"d": DecimalType(8, 3), "a": INT}, ("a",)),
        ]

        results = {
            (frozenset(reconciler.merge(list(p)).columns.items()), reconciler.merge(list(p)).primary_key)
            for p in itertools.permutations(schemas)
        }

        assert len(results) == 1
        columns, primary_key = results.pop()
        assert dict(columns) == {
            "a": BIGINT,
            "s": StringType(10),
            "d": DecimalType(8, 3),
        }
        assert primary_key == ("a",)

    def test_conflict_detected_in_every_order(self, reconciler):
        schemas = [
            source("db.public.t1", {"a": DecimalType(10, 2)}),
            source("db.public.t2", {"a": DecimalType(12, 1)}),
            source("db.public.t3", {"a": DecimalType(12, 2)}),
        ]

        for order in itertools.permutations(schemas):
            with pytest.raises(IncompatibleColumnTypeError) as exc_info:
                reconciler.merge(list(order))

            origins = {exc_info.value.first_origin, exc_info.value.second_origin}
            assert origins == {"db.public.t1", "db.public.t2"}

    def test_seen_types_recorded_per_column(self, reconciler):
        schemas = [
            source("db.public.t1", {"a": INT}),
            source("db.public.t2", {"a": BIGINT}),
            source("db.public.t3", {"a": INT}),
        ]

        unified = reconciler.merge(schemas)

        assert unified.seen["a"] == (("db.public.t1", INT), ("db.public.t2", BIGINT))

    def test_combine_does_not_mutate_inputs(self, reconciler):
        acc = UnifiedSchema(columns={"a": INT}, primary_key=("a",), origins={"a": "t1"})
        next_schema = source("t2", {"a": BIGINT, "b": STRING}, ("a",))

        result = reconciler.combine(acc, next_schema)

        assert dict(acc.columns) == {"a": INT}
        assert dict(next_schema.columns) == {"a": BIGINT, "b": STRING}
        assert dict(result.columns) == {"a": BIGINT, "b": STRING}


class TestBuildTarget:
    """Test building a fresh target schema."""

    def test_explicit_primary_key_wins(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT, "ts": DATE}, primary_key=("id",))

        draft = reconciler.build_target(unified, explicit_primary_key=["id", "ts"])

        assert draft.primary_key == ("id", "ts")

    def test_inferred_primary_key(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT, "ts": DATE}, primary_key=("id",))

        draft = reconciler.build_target(unified)

        assert draft.primary_key == ("id",)
        assert list(draft.columns) == ["id", "ts"]

    def test_unknown_explicit_primary_key(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT})

        with pytest.raises(UnknownPrimaryKeyColumnError) as exc_info:
            reconciler.build_target(unified, explicit_primary_key=["uid"])

        assert exc_info.value.column == "uid"

    def test_primary_key_required(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT})

        with pytest.raises(PrimaryKeyRequiredError):
            reconciler.build_target(unified)

    def test_partition_keys_and_options(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT, "region": STRING}, primary_key=("id",))

        draft = reconciler.build_target(
            unified,
            explicit_partition_keys=["region"],
            extra_options={"bucket": "4"},
        )

        assert draft.partition_keys == ("region",)
        assert dict(draft.options) == {"bucket": "4"}

    def test_unknown_partition_key(self, reconciler):
        unified = UnifiedSchema(columns={"id": INT}, primary_key=("id",))

        with pytest.raises(UnknownPartitionKeyColumnError):
            reconciler.build_target(unified, explicit_partition_keys=["region"])


class TestIsCompatible:
    """Test checking the unified schema against an existing target."""

    def test_existing_wide_enough(self, reconciler):
        existing = TargetSchema(columns={"a": BIGINT, "b": StringType(20)})
        unified = UnifiedSchema(columns={"a": INT})

        assert reconciler.is_compatible(existing, unified)
        assert reconciler.describe_incompatibilities(existing, unified) == []

    def test_existing_too_narrow(self, reconciler):
        existing = TargetSchema(columns={"a": INT})
        unified = UnifiedSchema(columns={"a": BIGINT})

        assert not reconciler.is_compatible(existing, unified)
        assert reconciler.describe_incompatibilities(existing, unified) == [
            "column a is INT in the target but sources require BIGINT"
        ]

    def test_missing_column(self, reconciler):
        existing = TargetSchema(columns={"a": BIGINT})
        unified = UnifiedSchema(columns={"a": INT, "b": STRING})

        assert not reconciler.is_compatible(existing, unified)
        assert reconciler.describe_incompatibilities(existing, unified) == [
            "column b is missing from the target"
        ]

    def test_can_apply_change(self, reconciler):
        assert reconciler.can_apply_change(INT, BIGINT)
        assert not reconciler.can_apply_change(BIGINT, INT)
        assert reconciler.can_apply_change(StringType(5), StringType(10))


class TestPlan:
    """Test the startup plan."""

    def test_plan_create(self, reconciler, orders_1, orders_2):
        plan = reconciler.plan(
            [orders_1, orders_2], None, explicit_partition_keys=["region"]
        )

        assert plan.action == PlanAction.CREATE
        assert plan.is_compatible
        assert plan.draft.primary_key == ("id",)
        assert plan.draft.partition_keys == ("region",)
        assert plan.existing is None

    def test_plan_compatible(self, reconciler, orders_1, target_schema):
        plan = reconciler.plan([orders_1], target_schema)

        assert plan.action == PlanAction.COMPATIBLE
        assert plan.draft is None
        assert plan.reasons == []

    def test_plan_incompatible(self, reconciler, orders_2):
        existing = TargetSchema(columns={"id": INT, "amount": DecimalType(12, 2)})

        plan = reconciler.plan([orders_2], existing)

        assert plan.action == PlanAction.INCOMPATIBLE
        assert not plan.is_compatible
        assert len(plan.reasons) == 2

    def test_plan_propagates_hard_errors(self, reconciler):
        with pytest.raises(PrimaryKeyRequiredError):
            reconciler.plan([source("db.public.t1", {"a": INT})])
