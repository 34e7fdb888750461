"""Tests for plimsoll.mutation: defaults, auto-timestamps, INSERT and UPDATE fragments."""

import copy

import pytest

from plimsoll.dialects import PostgresDialect
from plimsoll.errors import InvalidArgument
from plimsoll.model import ModelRegistry
from plimsoll.mutation import (
    PENDING_TIMESTAMP,
    PendingTimestamp,
    apply_defaults,
    build_insert,
    build_update_set,
    resolve_timestamps,
)
from tests.conftest import MODELS


@pytest.fixture
def registry():
    return ModelRegistry(MODELS)


@pytest.fixture
def dialect():
    return PostgresDialect()


class TestPendingTimestamp:

    def test_singleton(self):
        assert PendingTimestamp() is PENDING_TIMESTAMP

    def test_survives_deepcopy(self):
        assert copy.deepcopy([PENDING_TIMESTAMP])[0] is PENDING_TIMESTAMP

    def test_resolve_replaces_every_marker_with_one_value(self):
        args = ["a", PENDING_TIMESTAMP, 3, PENDING_TIMESTAMP]
        assert resolve_timestamps(args, 1234) == ["a", 1234, 3, 1234]
        assert args[1] is PENDING_TIMESTAMP


class TestApplyDefaultsCreating:

    def test_declared_defaults(self, registry):
        props = apply_defaults(registry["WithDefaults"], {"str_no_def": "a", "num_no_def": 1}, creating=True)
        assert props == {"str_no_def": "a", "num_no_def": 1, "str_def": "val", "num_def": 77}

    def test_given_values_win_over_defaults(self, registry):
        props = apply_defaults(registry["WithDefaults"], {"str_def": "mine"}, creating=True)
        assert props["str_def"] == "mine"

    def test_absent_attributes_without_default_are_zero_filled(self, registry):
        props = apply_defaults(registry["WithDefaults"], {}, creating=True)
        assert props == {"str_no_def": "", "str_def": "val", "num_no_def": 0, "num_def": 77}

    def test_auto_increment_left_to_the_engine(self, registry):
        props = apply_defaults(registry["Simple"], {"name": "alice"}, creating=True)
        assert props == {"name": "alice"}

    def test_defaults_are_deep_copies(self, registry):
        model = registry["Settings"]
        first = apply_defaults(model, {}, creating=True)
        first["flags"]["beta"].append("x")
        second = apply_defaults(model, {}, creating=True)
        assert second["flags"] == {"beta": []}

    def test_auto_timestamps(self, registry):
        props = apply_defaults(registry["Audited"], {"name": "alice"}, creating=True)
        assert props == {
            "name": "alice",
            "created_at": PENDING_TIMESTAMP,
            "inserted_at": PENDING_TIMESTAMP,
            "updated_at": PENDING_TIMESTAMP,
            "_set_at": PENDING_TIMESTAMP,
        }

    def test_exempt_and_nullable_attributes_stay_absent(self, registry):
        props = apply_defaults(registry["WithRelationship"], {"name": "x"}, creating=True)
        assert "my_simple" not in props
        props = apply_defaults(registry["Settings"], {}, creating=True)
        assert "note" not in props
        assert props["enabled"] is False

    def test_caller_props_untouched(self, registry):
        given = {"name": None}
        apply_defaults(registry["Simple"], given, creating=True)
        assert given == {"name": None}


class TestApplyDefaultsUpdating:

    def test_absent_attributes_untouched(self, registry):
        assert apply_defaults(registry["WithDefaults"], {"str_no_def": "c"}) == {"str_no_def": "c"}
        assert apply_defaults(registry["Audited"], {"name": "bob"}) == {"name": "bob"}

    def test_empty_props_stay_empty(self, registry):
        assert apply_defaults(registry["Audited"], {}) == {}

    def test_explicit_null_zero_filled(self, registry):
        assert apply_defaults(registry["Simple"], {"name": None}) == {"name": ""}

    def test_explicit_null_on_relation_stays_null(self, registry):
        assert apply_defaults(registry["WithRelationship"], {"my_simple": None}) == {"my_simple": None}

    def test_explicit_null_updated_at_gets_timestamp(self, registry):
        props = apply_defaults(registry["Audited"], {"updated_at": None})
        assert props == {"updated_at": PENDING_TIMESTAMP}

    def test_explicit_null_created_at_only_set_on_create(self, registry):
        assert apply_defaults(registry["Audited"], {"created_at": None}) == {"created_at": None}


class TestBuildInsert:

    def test_single_row(self, registry, dialect):
        args = []
        columns, values = build_insert(registry["Simple"], [{"name": "alice"}], args, dialect)
        assert columns == '("name")'
        assert values == "($1)"
        assert args == ["alice"]

    def test_multi_row_single_values_list(self, registry, dialect):
        args = []
        columns, values = build_insert(
            registry["Audited"],
            [{"name": "alice", "created_at": PENDING_TIMESTAMP}, {"name": "bob", "created_at": PENDING_TIMESTAMP}],
            args,
            dialect,
        )
        assert columns == '("name", "created_at")'
        assert values == "($1, $2), ($3, $4)"
        assert args == ["alice", PENDING_TIMESTAMP, "bob", PENDING_TIMESTAMP]

    def test_rows_follow_first_row_column_order(self, registry, dialect):
        args = []
        build_insert(registry["WithDefaults"], [{"str_def": "a", "num_def": 1}, {"num_def": 2, "str_def": "b"}], args, dialect)
        assert args == ["a", 1, "b", 2]

    def test_mismatched_columns_rejected(self, registry, dialect):
        with pytest.raises(InvalidArgument, match="same columns"):
            build_insert(registry["WithDefaults"], [{"str_def": "a"}, {"num_def": 1}], [], dialect)

    def test_json_serialized(self, registry, dialect):
        args = []
        build_insert(registry["Settings"], [{"flags": {"beta": ["x"]}}], args, dialect)
        assert args == ['{"beta": ["x"]}']

    def test_no_columns(self, registry, dialect):
        args = []
        assert build_insert(registry["Simple"], [{}], args, dialect) == ("", "")
        assert args == []

    def test_no_columns_several_rows(self, registry, dialect):
        with pytest.raises(InvalidArgument):
            build_insert(registry["Simple"], [{}, {}], [], dialect)

    def test_no_rows(self, registry, dialect):
        with pytest.raises(InvalidArgument):
            build_insert(registry["Simple"], [], [], dialect)


class TestBuildUpdateSet:

    def test_set_fragment(self, registry, dialect):
        args = []
        sql = build_update_set(registry["WithDefaults"], {"str_no_def": "c", "num_def": 3}, args, dialect)
        assert sql == '"str_no_def" = $1, "num_def" = $2'
        assert args == ["c", 3]

    def test_json_serialized(self, registry, dialect):
        args = []
        build_update_set(registry["Settings"], {"flags": {"a": 1}}, args, dialect)
        assert args == ['{"a": 1}']

    def test_empty_is_no_op(self, registry, dialect):
        args = []
        assert build_update_set(registry["Simple"], {}, args, dialect) == ""
        assert args == []
