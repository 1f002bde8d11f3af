"""Tests for the table engine."""

import pytest

from typed_records import Database
from typed_records.entries import Entries
from typed_records.errors import (
    ArithmeticOverflowError,
    SchemaError,
    UnknownColumnError,
)
from typed_records.table import Table
from typed_records.types import (
    ANY_ARRAY,
    FLOAT32,
    FLOAT64,
    INT8,
    INT64,
    STRING,
    UINT64,
    Column,
    array_of,
)
from typed_records.values import Value


@pytest.fixture
def users():
    """A users table with scalar and array columns."""
    return Table(
        "users",
        [
            Column("name", STRING),
            Column("age", INT64),
            Column("tags", array_of(STRING)),
        ],
    )


def _everything(entries: Entries) -> bool:
    return True


class TestTableSchema:
    """Tests for table construction."""

    def test_duplicate_columns(self):
        with pytest.raises(SchemaError) as exc_info:
            Table("t", [Column("a", INT8), Column("a", STRING)])
        assert "duplicate column 'a'" in exc_info.value.messages

    def test_wildcard_column_type(self):
        with pytest.raises(SchemaError):
            Table("t", [Column("a", ANY_ARRAY)])

    def test_nesting_limit(self):
        deep = array_of(array_of(array_of(INT8)))
        Table("t", [Column("a", deep)], max_nesting_depth=3)
        with pytest.raises(SchemaError):
            Table("t", [Column("a", deep)], max_nesting_depth=2)

    def test_zero_column_table_rejects_rows(self):
        table = Table("t", [])
        with pytest.raises(SchemaError):
            table.insert([])
        assert table.row_count == 0

    def test_keys_and_column_lookup(self, users):
        assert users.keys == ["name", "age", "tags"]
        assert users.column("age").type_tag == INT64
        with pytest.raises(UnknownColumnError):
            users.column("email")


class TestInsert:
    """Tests for schema-checked insertion."""

    def test_insert_values_and_natives(self, users):
        """Test inserting Value instances and native objects."""
        assert users.insert([Value.string("Ada"), Value.int64(30), Value.array([])]) == 0
        assert users.insert(["Alan", 41, ["math", "logic"]]) == 1
        assert len(users) == 2
        assert users.get_at(1).row("tags").get() == ["math", "logic"]

    def test_insert_mapping(self, users):
        users.insert({"name": "Ada", "age": 30, "tags": []})
        assert users.get_at(0).to_dict() == {"name": "Ada", "age": 30, "tags": []}

    def test_insert_mapping_errors(self, users):
        with pytest.raises(SchemaError):
            users.insert({"name": "Ada", "age": 30, "tags": [], "email": "x"})
        with pytest.raises(SchemaError):
            users.insert({"name": "Ada"})
        assert len(users) == 0

    def test_empty_array_is_wildcard(self, users):
        """Test that an empty array satisfies any array column."""
        users.insert(["Ada", 30, Value.array([])])
        assert users.get_at(0)["tags"].value.is_empty_array

    def test_type_mismatch_names_column(self, users):
        """Test that mismatched values fail and nothing is inserted."""
        with pytest.raises(SchemaError) as exc_info:
            users.insert([Value.string("Ada"), Value.uint64(30), Value.array([])])
        assert len(exc_info.value.messages) == 1
        assert "age" in exc_info.value.messages[0]
        assert users.row_count == 0

    def test_all_column_errors_collected(self, users):
        """Test that every bad column is reported at once."""
        with pytest.raises(SchemaError) as exc_info:
            users.insert([Value.int64(1), "thirty", [1]])
        messages = exc_info.value.messages
        assert len(messages) == 3
        assert any("name" in m for m in messages)
        assert any("age" in m for m in messages)
        assert any("tags" in m for m in messages)
        assert users.row_count == 0

    def test_row_length_mismatch(self, users):
        with pytest.raises(SchemaError):
            users.insert(["Ada", 30])
        assert users.row_count == 0

    def test_nullable_columns(self):
        table = Table("t", [Column("a", STRING), Column("b", INT64, nullable=True)])
        table.insert(["x", None])
        assert table.get_at(0).row("b").value is None
        with pytest.raises(SchemaError):
            table.insert([None, 1])

    def test_get_at_out_of_range(self, users):
        users.insert(["Ada", 30, []])
        with pytest.raises(IndexError):
            users.get_at(1)
        with pytest.raises(IndexError):
            users.get_at(-1)


class TestQueries:
    """Tests for get_where."""

    def test_get_where_in_insertion_order(self, users):
        users.insert(["Ada", 30, []])
        users.insert(["Alan", 41, []])
        users.insert(["Grace", 30, []])

        result = users.get_where(lambda e: e.row("age").is_(30))
        assert [r.row("name").get() for r in result] == ["Ada", "Grace"]

    def test_get_where_is_repeatable(self, users):
        """Test that repeated queries without mutation agree."""
        users.insert(["Ada", 30, ["a"]])
        users.insert(["Alan", 41, []])
        predicate = lambda e: e.row("age").get() > 20  # noqa: E731
        assert users.get_where(predicate) == users.get_where(predicate)

    def test_results_are_projections(self, users):
        """Test that results do not alias table storage."""
        users.insert(["Ada", 30, []])
        result = users.get_where(_everything)
        users.set_where(_everything, {"age": 31})
        assert result[0].row("age").get() == 30

    def test_entries_lookup(self, users):
        users.insert(["Ada", 30, []])
        entries = users.get_at(0)
        assert entries[0].key == "name"
        assert entries["age"].value == Value.int64(30)
        assert entries.get("missing") is None
        assert entries.keys() == ["name", "age", "tags"]
        with pytest.raises(UnknownColumnError):
            entries.row("missing")


class TestSetWhere:
    """Tests for set_where."""

    def test_updates_matching_rows(self, users):
        users.insert(["Ada", 30, []])
        users.insert(["Alan", 41, []])
        changed = users.set_where(lambda e: e.row("name").is_("Ada"), {"age": 31, "tags": ["x"]})
        assert changed == 1
        assert users.get_at(0).to_dict() == {"name": "Ada", "age": 31, "tags": ["x"]}
        assert users.get_at(1).row("age").get() == 41

    def test_unknown_column(self, users):
        users.insert(["Ada", 30, []])
        with pytest.raises(UnknownColumnError):
            users.set_where(_everything, {"email": "a@b.c"})
        assert users.get_at(0).row("age").get() == 30

    def test_type_mismatch(self, users):
        users.insert(["Ada", 30, []])
        with pytest.raises(SchemaError):
            users.set_where(_everything, {"age": Value.int8(1)})
        assert users.get_at(0).row("age").get() == 30

    def test_partial_write_is_kept(self, users):
        """Test that rows before the failing row stay updated."""
        users.insert(["Ada", 30, []])
        users.insert(["Alan", 41, []])
        users.insert(["Grace", 50, ["navy"]])
        users.insert(["Edsger", 60, []])

        # An empty array is only accepted where the cell is already empty
        with pytest.raises(SchemaError) as exc_info:
            users.set_where(_everything, {"age": 99, "tags": Value.array([])})

        assert exc_info.value.changed == 2
        assert "row 2" in exc_info.value.messages[0]
        ages = [row.row("age").get() for row in users]
        assert ages == [99, 99, 50, 60]

    def test_no_matches(self, users):
        users.insert(["Ada", 30, []])
        assert users.set_where(lambda e: False, {"age": 1}) == 0


class TestRemoveWhere:
    """Tests for remove_where."""

    def test_remove_adjacent_matches(self, users):
        """Test that removal does not skip rows as indices shift."""
        for name, age in [("a", 1), ("b", 1), ("c", 2), ("d", 1)]:
            users.insert([name, age, []])
        assert users.remove_where(lambda e: e.row("age").is_(1)) == 3
        assert [row.row("name").get() for row in users] == ["c"]

    def test_remove_nothing(self, users):
        users.insert(["Ada", 30, []])
        assert users.remove_where(lambda e: False) == 0
        assert len(users) == 1


class TestIncWhere:
    """Tests for inc_where."""

    @pytest.mark.parametrize(
        "tag, start, expected",
        [
            (INT8, Value.int8(1), Value.int8(2)),
            (INT64, Value.int64(-1), Value.int64(0)),
            (UINT64, Value.uint64(7), Value.uint64(8)),
            (FLOAT32, Value.float32(1.5), Value.float32(2.5)),
            (FLOAT64, Value.float64(0.25), Value.float64(1.25)),
        ],
    )
    def test_increment_each_numeric_type(self, tag, start, expected):
        table = Table("t", [Column("n", tag)])
        table.insert([start])
        assert table.inc_where(_everything, "n") == 1
        assert table.get_at(0).row("n").value == expected

    def test_overflow_guard(self):
        """Test that an int8 at 127 reports overflow and is unchanged."""
        table = Table("t", [Column("id", INT64), Column("n", INT8)])
        table.insert([1, Value.int8(127)])
        table.insert([2, Value.int8(5)])

        with pytest.raises(ArithmeticOverflowError) as exc_info:
            table.inc_where(_everything, "n")

        assert exc_info.value.changed == 1
        assert len(exc_info.value.messages) == 1
        assert "row 0" in exc_info.value.messages[0]
        assert table.get_at(0).row("n").value == Value.int8(127)
        assert table.get_at(1).row("n").value == Value.int8(6)

    def test_non_numeric_column(self, users):
        users.insert(["Ada", 30, []])
        with pytest.raises(SchemaError):
            users.inc_where(_everything, "name")
        with pytest.raises(SchemaError):
            users.inc_where(_everything, "tags")

    def test_unknown_column(self, users):
        with pytest.raises(UnknownColumnError):
            users.inc_where(_everything, "height")

    def test_null_cells_reported(self):
        table = Table("t", [Column("n", INT64, nullable=True)])
        table.insert([None])
        table.insert([1])
        with pytest.raises(SchemaError) as exc_info:
            table.inc_where(_everything, "n")
        assert exc_info.value.changed == 1
        assert table.get_at(1).row("n").get() == 2


class TestPushWhere:
    """Tests for push_where."""

    def test_push_single_element(self, users):
        users.insert(["Ada", 30, []])
        assert users.push_where(_everything, "tags", "math") == 1
        assert users.get_at(0).row("tags").get() == ["math"]

    def test_push_splices_arrays(self, users):
        users.insert(["Ada", 30, ["a"]])
        assert users.push_where(_everything, "tags", ["b", "c"]) == 1
        assert users.push_where(_everything, "tags", Value.array([])) == 0
        assert users.get_at(0).row("tags").get() == ["a", "b", "c"]

    def test_push_null(self, users):
        users.insert(["Ada", 30, ["a"]])
        with pytest.raises(SchemaError) as exc_info:
            users.push_where(_everything, "tags", None)
        assert exc_info.value.changed == 0
        assert users.get_at(0).row("tags").get() == ["a"]

    def test_push_into_nested_arrays(self):
        table = Table("t", [Column("grid", array_of(array_of(INT64)))])
        table.insert([[]])
        table.push_where(_everything, "grid", [1, 2])
        table.push_where(_everything, "grid", [[3], []])
        assert table.get_at(0).row("grid").get() == [[1, 2], [3], []]

    def test_mismatch_reported_per_row(self, users):
        users.insert(["Ada", 30, []])
        users.insert(["Alan", 41, []])
        with pytest.raises(SchemaError) as exc_info:
            users.push_where(_everything, "tags", Value.int64(1))
        assert len(exc_info.value.messages) == 2
        assert exc_info.value.changed == 0
        assert users.get_at(0).row("tags").get() == []

    def test_non_array_column(self, users):
        with pytest.raises(SchemaError):
            users.push_where(_everything, "age", 1)

    def test_unknown_column(self, users):
        with pytest.raises(UnknownColumnError):
            users.push_where(_everything, "friends", "x")

    def test_null_cells_skipped(self):
        table = Table("t", [Column("tags", array_of(STRING), nullable=True)])
        table.insert([None])
        table.insert([["a"]])
        with pytest.raises(SchemaError) as exc_info:
            table.push_where(_everything, "tags", "b")
        assert exc_info.value.changed == 1
        assert table.get_at(1).row("tags").get() == ["a", "b"]


class TestScenarios:
    """End-to-end scenarios through the Database surface."""

    def test_users_scenario(self):
        db = Database()
        db.create_table(
            "users",
            [
                Column("name", STRING),
                Column("age", INT64),
                Column("tags", array_of(STRING)),
            ],
        )
        users = db.table("users")
        assert users is not None

        users.insert([Value.string("Ada"), Value.int64(30), Value.array([])])
        users.push_where(lambda _: True, "tags", Value.string("math"))

        result = users.get_where(lambda e: e.row("name").is_("Ada"))
        assert len(result) == 1
        assert result[0].row("age").value == Value.int64(30)
        assert result[0].row("tags").get() == ["math"]
