from __future__ import annotations

from typing import Dict, List, Literal

from tablefuse.models.table import Table
from tablefuse.util import is_empty, is_numeric_like

ColumnType = Literal["numeric", "categorical", "empty"]

# Share of non-empty values that must look numeric; tolerates stray "N/A" markers.
NUMERIC_THRESHOLD = 0.8


def classify_column(values: List) -> ColumnType:
    present = [v for v in values if not is_empty(v)]
    if not present:
        return "empty"
    numeric = sum(1 for v in present if is_numeric_like(v))
    return "numeric" if numeric / len(present) > NUMERIC_THRESHOLD else "categorical"


def classify_columns(table: Table) -> Dict[str, ColumnType]:
    """Classify every column of `table` as numeric, categorical or empty.

    Pure function of the table's data; recompute rather than cache.
    """
    return {h: classify_column(table.column(h)) for h in table.headers}


def numeric_columns(table: Table) -> List[str]:
    types = classify_columns(table)
    return [h for h in table.headers if types[h] == "numeric"]


def categorical_columns(table: Table) -> List[str]:
    types = classify_columns(table)
    return [h for h in table.headers if types[h] == "categorical"]
