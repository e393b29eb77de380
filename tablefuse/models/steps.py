from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from tablefuse.errors import TableFuseUserError
from tablefuse.join import JOIN_MODES, join_tables
from tablefuse.keys import JoinSuggestion, find_best_join_keys
from tablefuse.models.table import Table


@dataclass(frozen=True)
class Join:
    """Pipeline step that joins the loaded tables.

    columns: {table_id: column}; None means "use the top join-key suggestion".
    tables: ids of the tables to join, base first; None means every loaded table.
    """

    columns: Optional[Dict[str, str]] = None
    how: str = "inner"
    tables: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.how not in JOIN_MODES:
            raise TableFuseUserError(
                "E_JOIN_MODE",
                f"join mode must be one of: {', '.join(JOIN_MODES)} (got {self.how!r}).",
                hint="Example: Join(how='left')",
            )
        if self.columns is not None:
            if not isinstance(self.columns, Mapping) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in self.columns.items()
            ):
                raise TableFuseUserError(
                    "E_JOIN_COLUMNS",
                    "Join columns must be a mapping of table id to column name.",
                    hint="Example: Join(columns={'gdp:csv-0': 'country', 'pop:csv-0': 'Country'})",
                )
            object.__setattr__(self, "columns", dict(self.columns))
        if self.tables is not None:
            if isinstance(self.tables, str) or not all(isinstance(t, str) for t in self.tables):
                raise TableFuseUserError(
                    "E_JOIN_TABLES",
                    "Join tables must be a list of table ids.",
                    hint="Example: Join(tables=['gdp:csv-0', 'pop:csv-0'])",
                )
            object.__setattr__(self, "tables", tuple(self.tables))

    def select(self, loaded: Sequence[Table]) -> List[Table]:
        if self.tables is None:
            return list(loaded)
        by_id = {t.id: t for t in loaded}
        missing = [tid for tid in self.tables if tid not in by_id]
        if missing:
            raise TableFuseUserError(
                "E_JOIN_UNKNOWN_TABLE",
                "Join refers to table id(s) that were not loaded: " + str(missing) + ".",
                hint="Loaded tables: " + ", ".join(by_id),
            )
        return [by_id[tid] for tid in self.tables]

    def apply(self, loaded: Sequence[Table]) -> Tuple[Table, List[JoinSuggestion]]:
        """Join the selected tables; returns the result and the suggestions considered."""
        tables = self.select(loaded)
        suggestions = find_best_join_keys(tables)
        columns = self.columns
        if columns is None and len(tables) > 1:
            if not suggestions:
                raise TableFuseUserError(
                    "E_JOIN_NO_SUGGESTION",
                    "No join key was specified and none could be detected.",
                    hint="Name the join column per table: Join(columns={table_id: column, ...}).",
                )
            columns = suggestions[0].as_mapping()
        return join_tables(tables, columns or {}, how=self.how), suggestions

    def __str__(self) -> str:
        cols = self.columns if self.columns is not None else "auto"
        return f"Join(how={self.how}, columns={cols})"
