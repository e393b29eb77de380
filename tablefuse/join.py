"""Combine tables on one key column per table.

The first table is the base. Keys compare through `normalize_value`, the same
function the key detector scores with, so a suggested key joins the way it was
scored.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from tablefuse.errors import TableFuseUserError
from tablefuse.keys import JoinColumn
from tablefuse.models.table import Row, Table
from tablefuse.util import normalize_value

logger = logging.getLogger(__name__)

JOIN_MODES = ("inner", "left")

JoinColumns = Union[Mapping, Sequence[JoinColumn]]


@dataclass(frozen=True)
class _HeaderSource:
    table_index: int
    original: str
    display: str


def _columns_by_table(columns: JoinColumns) -> Dict[str, str]:
    if isinstance(columns, Mapping):
        return {str(k): v for k, v in columns.items()}
    out: Dict[str, str] = {}
    for c in columns:
        if not isinstance(c, JoinColumn):
            raise TableFuseUserError(
                "E_JOIN_COLUMNS",
                "join columns must be a {table_id: column} mapping or a list of JoinColumn.",
                hint="Example: join_tables(tables, {'gdp:csv-0': 'country', 'pop:csv-0': 'Country'})",
            )
        # first entry per table wins
        out.setdefault(c.table_id, c.column)
    return out


def merge_headers(tables: Sequence[Table], join_columns: Sequence[Optional[str]]) -> List[_HeaderSource]:
    """Combined header layout, in table order.

    Non-base tables drop their own join column. A header already taken by an
    earlier table becomes "header (k)", k being the 1-based index of the table
    that introduces the clash.
    """
    used = set()
    out: List[_HeaderSource] = []
    for ti, table in enumerate(tables):
        for header in table.headers:
            if ti > 0 and header == join_columns[ti]:
                continue
            display = header
            while display in used:
                display = f"{display} ({ti + 1})"
            used.add(display)
            out.append(_HeaderSource(ti, header, display))
    return out


def lookup_first(table: Table, column: Optional[str]) -> Dict[str, Row]:
    """normalized key -> first row carrying it; rows with an empty key are skipped."""
    lookup: Dict[str, Row] = {}
    if column is None:
        return lookup
    for row in table.data:
        key = normalize_value(row.get(column))
        if key and key not in lookup:
            lookup[key] = row
    return lookup


def join_tables(tables: Sequence[Table], columns: JoinColumns, how: str = "inner") -> Table:
    """Join `tables` on one column each, using the first table as the base.

    how="inner" keeps base rows whose key is found in every other table, skipping
    empty and repeated base keys. how="left" keeps every base row and fills
    unmatched contributions with None. Duplicate keys in non-base tables resolve
    to the first row seen.
    """
    if how not in JOIN_MODES:
        raise TableFuseUserError(
            "E_JOIN_MODE",
            f"join mode must be one of: {', '.join(JOIN_MODES)} (got {how!r}).",
            hint="Example: join_tables(tables, columns, how='left')",
        )
    if not tables:
        raise TableFuseUserError(
            "E_JOIN_TABLES",
            "join requires at least one table.",
            hint="Pass the tables to combine, base table first.",
        )
    if len(tables) == 1:
        return tables[0]

    by_table = _columns_by_table(columns)
    base = tables[0]
    base_column = by_table.get(base.id)
    if base_column is None:
        raise TableFuseUserError(
            "E_JOIN_BASE_COLUMN",
            f"no column specified for base table '{base.name}' (id={base.id}).",
            hint="Choose a join column for the first table, e.g. the top suggestion from find_best_join_keys().",
        )

    join_columns = [by_table.get(t.id) for t in tables]
    layout = merge_headers(tables, join_columns)
    lookups = [None] + [lookup_first(t, c) for t, c in zip(tables[1:], join_columns[1:])]
    logger.debug(
        "join %s on %s: lookup sizes %s",
        how,
        join_columns,
        [len(lk) for lk in lookups[1:]],
    )

    def _combine(base_row: Row, key: str) -> Row:
        row: Row = {}
        for hs in layout:
            if hs.table_index == 0:
                source = base_row
            else:
                source = lookups[hs.table_index].get(key) if key else None
            row[hs.display] = source.get(hs.original) if source is not None else None
        return row

    rows: List[Row] = []
    if how == "inner":
        seen = set()
        for base_row in base.data:
            key = normalize_value(base_row.get(base_column))
            if not key or key in seen:
                continue
            seen.add(key)
            if not all(key in lk for lk in lookups[1:]):
                continue
            rows.append(_combine(base_row, key))
    else:
        for base_row in base.data:
            rows.append(_combine(base_row, normalize_value(base_row.get(base_column))))

    logger.info("joined %d tables (%s): %d rows", len(tables), how, len(rows))
    return Table(
        id="joined-table",
        name="Joined: " + " + ".join(t.name for t in tables),
        headers=tuple(hs.display for hs in layout),
        data=tuple(rows),
    )
