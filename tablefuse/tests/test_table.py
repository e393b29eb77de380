import petl as etl
import pytest

from tablefuse import Table, TableFuseUserError


def test_table_rows_carry_exactly_the_headers():
    """Missing cells become None and cells outside the headers are dropped."""
    t = Table("t", "T", ("a", "b"), ({"a": 1}, {"a": 2, "b": 3, "zzz": 9}))

    assert t.data == ({"a": 1, "b": None}, {"a": 2, "b": 3})
    assert t.row_count == 2
    assert t.column_count == 2


def test_table_copies_input_rows():
    """Mutating the caller's dict does not reach into the table."""
    row = {"a": 1}
    t = Table("t", "T", ("a",), (row,))
    row["a"] = 99

    assert t.data[0]["a"] == 1


def test_table_rejects_duplicate_headers():
    with pytest.raises(TableFuseUserError) as ex:
        Table("t", "T", ("a", "a"), ())
    assert getattr(ex.value, "code", None) == "E_TABLE_HEADERS"


def test_table_rejects_non_mapping_rows():
    with pytest.raises(TableFuseUserError) as ex:
        Table("t", "T", ("a",), ([1],))
    assert getattr(ex.value, "code", None) == "E_TABLE_ROW"


def test_table_column_unknown_reads_as_none():
    t = Table("t", "T", ("a",), ({"a": 1}, {"a": 2}))
    assert t.column("a") == [1, 2]
    assert t.column("nope") == [None, None]


def test_table_petl_bridge():
    """from_petl/to_petl keep header order and values."""
    t = Table.from_petl([("a", "b"), (1, 2), (3, 4)], id="t", name="T")

    assert t.headers == ("a", "b")
    assert t.data == ({"a": 1, "b": 2}, {"a": 3, "b": 4})
    assert list(etl.header(t.to_petl())) == ["a", "b"]
    assert list(etl.data(t.to_petl())) == [(1, 2), (3, 4)]


def test_table_str_includes_preview():
    t = Table("t", "Sales", ("a",), ({"a": 1},))
    s = str(t)
    assert 'Table("Sales")' in s
    assert "Preview:" in s


def test_empty_table_str_has_no_preview():
    assert "Preview" not in str(Table("t", "Empty"))
