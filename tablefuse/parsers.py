"""Turn raw delimited text or HTML into Tables.

CSV text yields exactly one table; HTML yields one table per <table> element
that has at least one data row.
"""
from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from typing import Any, List, Optional, Sequence

import petl as etl

from tablefuse.errors import TableFuseUserError
from tablefuse.models.table import Table

logger = logging.getLogger(__name__)

_CSV_NUMBER = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
_CSV_INT = re.compile(r"^\s*-?\d+\s*$")


def _dynamic_type(v: Any) -> Any:
    """Spreadsheet-style typing for delimited cells: numbers, booleans, blanks."""
    if not isinstance(v, str):
        return v
    if v == "":
        return None
    if v in ("true", "TRUE", "True"):
        return True
    if v in ("false", "FALSE", "False"):
        return False
    if _CSV_INT.match(v):
        return int(v)
    if _CSV_NUMBER.match(v):
        return float(v)
    return v


def _unique_names(names: List[str]) -> List[str]:
    used = set()
    out = []
    for n in names:
        name = n
        k = 2
        while name in used:
            name = f"{n} ({k})"
            k += 1
        used.add(name)
        out.append(name)
    return out


def _column_names(header: Sequence[Any], width: int) -> List[str]:
    """Trimmed header names widened to `width`; blanks become "Column N"."""
    names = []
    for i in range(width):
        h = str(header[i]).strip() if i < len(header) and header[i] is not None else ""
        names.append(h or f"Column {i + 1}")
    return _unique_names(names)


def parse_csv(text: str, *, id: str = "csv-0", name: str = "CSV Data", **options: Any) -> List[Table]:
    """Parse delimited text into a single Table.

    The first row names the columns; blank lines are skipped; numeric-looking cells
    become int/float. Rows wider than the header row add "Column N" columns.
    Extra petl `fromcsv` options (delimiter, quotechar, ...) pass through.
    """
    text = text.lstrip("\ufeff")
    if not text.strip():
        return [Table(id=id, name=name)]
    try:
        src = etl.MemorySource(text.encode("utf-8"))
        raw = etl.fromcsv(src, encoding="utf-8", **options)
        header = list(etl.header(raw))
        width = max([len(header)] + [len(r) for r in etl.data(raw)])
        names = _column_names(header, width)
        # convert by position only after the names are unique
        tbl = etl.convertall(etl.setheader(raw, names), _dynamic_type)
        body = list(etl.data(tbl))
    except Exception as e:
        raise TableFuseUserError(
            "E_CSV_PARSE",
            f"Could not parse delimited text: {type(e).__name__}: {e}",
            hint="Check the delimiter and quoting options.",
        ) from e

    if width > len(header):
        logger.warning("%s: rows are wider than the header; added %d column(s)", name, width - len(header))

    rows = [dict(zip(names, r)) for r in body if not all(v is None for v in r)]
    return [Table(id=id, name=name, headers=tuple(names), data=tuple(rows))]


# ---------------- HTML ----------------

class _RowSpec:
    __slots__ = ("section", "cells")

    def __init__(self, section: Optional[str]):
        self.section = section
        self.cells: List[List[Any]] = []  # [tag, [text parts]]


class _TableSpec:
    def __init__(self, index: int):
        self.index = index
        self.caption: List[str] = []
        self.rows: List[_RowSpec] = []
        self.section: Optional[str] = None
        self.in_caption = False
        self.in_cell = False


class _TableCollector(HTMLParser):
    """Collect the rows and cell text of every <table>, nested ones included."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tables: List[_TableSpec] = []
        self._open: List[_TableSpec] = []

    def handle_starttag(self, tag, attrs):
        if tag == "table":
            spec = _TableSpec(len(self.tables))
            self.tables.append(spec)
            self._open.append(spec)
            return
        if not self._open:
            return
        t = self._open[-1]
        if tag in ("thead", "tbody", "tfoot"):
            t.section = tag
        elif tag == "tr":
            t.rows.append(_RowSpec(t.section))
            t.in_cell = False
        elif tag in ("td", "th"):
            if not t.rows:
                t.rows.append(_RowSpec(t.section))
            t.rows[-1].cells.append([tag, []])
            t.in_cell = True
        elif tag == "caption":
            t.in_caption = True

    def handle_endtag(self, tag):
        if not self._open:
            return
        if tag == "table":
            self._open.pop()
            return
        t = self._open[-1]
        if tag in ("td", "th"):
            t.in_cell = False
        elif tag == "caption":
            t.in_caption = False
        elif tag in ("thead", "tbody", "tfoot"):
            t.section = None

    def handle_data(self, data):
        if not self._open:
            return
        t = self._open[-1]
        if t.in_caption:
            t.caption.append(data)
        elif t.in_cell and t.rows and t.rows[-1].cells:
            t.rows[-1].cells[-1][1].append(data)


def _cell_text(cell: List[Any]) -> str:
    return "".join(cell[1]).strip()


def _html_table(spec: _TableSpec) -> Optional[Table]:
    if not spec.rows:
        return None

    head_rows = [r for r in spec.rows if r.section == "thead"]
    body_rows = [r for r in spec.rows if r.section != "thead"]

    headers: List[str] = []
    if head_rows:
        headers = [_cell_text(c) for c in head_rows[0].cells]
    elif body_rows:
        first = body_rows[0]
        ths = [c for c in first.cells if c[0] == "th"]
        headers = [_cell_text(c) for c in (ths or first.cells)]
        body_rows = body_rows[1:]

    body_rows = [r for r in body_rows if r.cells]
    width = max([len(headers)] + [len(r.cells) for r in body_rows])
    names = _column_names(headers, width)

    data = [
        {names[i]: _cell_text(c) for i, c in enumerate(r.cells)}
        for r in body_rows
    ]
    if not data:
        return None

    caption = "".join(spec.caption).strip()
    return Table(
        id=f"table-{spec.index}",
        name=caption or f"Table {spec.index + 1}",
        headers=tuple(names),
        data=tuple(data),
    )


def parse_html_tables(html: str) -> List[Table]:
    """One Table per <table> element with data; header from <thead> or the first row."""
    collector = _TableCollector()
    collector.feed(html)
    collector.close()

    out: List[Table] = []
    for spec in collector.tables:
        table = _html_table(spec)
        if table is None:
            logger.warning("skipping HTML table #%d: no data rows", spec.index + 1)
            continue
        out.append(table)
    return out
