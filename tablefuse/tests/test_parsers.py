import pytest

from tablefuse import TableFuseUserError
from tablefuse.parsers import parse_csv, parse_html_tables


# ---------- CSV ----------
def test_parse_csv_types_cells_and_skips_blank_lines():
    text = 'name,price,qty,active\nWidget,"$1,234.50",3,true\n\nGadget,2.5,,FALSE\n'

    (t,) = parse_csv(text, id="csv-0", name="products")

    assert t.id == "csv-0"
    assert t.name == "products"
    assert t.headers == ("name", "price", "qty", "active")
    assert t.data == (
        {"name": "Widget", "price": "$1,234.50", "qty": 3, "active": True},
        {"name": "Gadget", "price": 2.5, "qty": None, "active": False},
    )


def test_parse_csv_strips_bom_and_header_space():
    (t,) = parse_csv("\ufeff country ,gdp\nUSA,1\n")
    assert t.headers == ("country", "gdp")
    assert t.name == "CSV Data"


def test_parse_csv_renames_duplicate_headers():
    (t,) = parse_csv("a,a,a\n1,2,3\n")
    assert t.headers == ("a", "a (2)", "a (3)")
    assert t.data[0] == {"a": 1, "a (2)": 2, "a (3)": 3}


def test_parse_csv_types_every_duplicate_column():
    """Renamed duplicate columns are typed like the first one."""
    (t,) = parse_csv("id,v,v\n1,2.5,true\n")
    assert t.data == ({"id": 1, "v": 2.5, "v (2)": True},)


def test_parse_csv_names_blank_headers():
    (t,) = parse_csv("a,,b\n1,2,3\n")
    assert t.headers == ("a", "Column 2", "b")
    assert t.data[0]["Column 2"] == 2


def test_parse_csv_keeps_cells_beyond_the_header():
    """Rows wider than the header add positional columns instead of losing cells."""
    (t,) = parse_csv("a,b\n1,2,3\n4,5\n")
    assert t.headers == ("a", "b", "Column 3")
    assert t.data == ({"a": 1, "b": 2, "Column 3": 3}, {"a": 4, "b": 5, "Column 3": None})


def test_parse_csv_empty_text_is_one_empty_table():
    (t,) = parse_csv("  \n")
    assert t.headers == ()
    assert t.row_count == 0


def test_parse_csv_passes_delimiter_through():
    (t,) = parse_csv("a;b\n1;x\n", delimiter=";")
    assert t.data == ({"a": 1, "b": "x"},)


def test_parse_csv_wraps_reader_errors():
    with pytest.raises(TableFuseUserError) as ex:
        parse_csv("a,b\n1,2\n", delimiter="::")
    assert getattr(ex.value, "code", None) == "E_CSV_PARSE"


# ---------- HTML ----------
HTML = """
<html><body>
<table>
  <caption> GDP by country </caption>
  <thead><tr><th>Country</th><th>GDP</th></tr></thead>
  <tbody>
    <tr><td>USA</td><td>21,000</td></tr>
    <tr><td>France &amp; Monaco</td><td>2,700</td><td>extra</td></tr>
  </tbody>
</table>
<table><tr><td>only</td><td>header</td></tr></table>
<table>
  <tr><th>x</th><th></th></tr>
  <tr><td>1</td><td>2</td></tr>
</table>
</body></html>
"""


def test_parse_html_one_table_per_element_with_data():
    tables = parse_html_tables(HTML)

    assert [t.id for t in tables] == ["table-0", "table-2"]


def test_parse_html_thead_caption_and_extra_cells():
    t = parse_html_tables(HTML)[0]

    assert t.name == "GDP by country"
    assert t.headers == ("Country", "GDP", "Column 3")
    assert t.data == (
        {"Country": "USA", "GDP": "21,000", "Column 3": None},
        {"Country": "France & Monaco", "GDP": "2,700", "Column 3": "extra"},
    )


def test_parse_html_first_row_header_and_positional_names():
    t = parse_html_tables(HTML)[1]

    assert t.name == "Table 3"
    assert t.headers == ("x", "Column 2")
    assert t.data == ({"x": "1", "Column 2": "2"},)


def test_parse_html_without_tables():
    assert parse_html_tables("<p>no tables here</p>") == []
