from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import petl as etl

from tablefuse.errors import TableFuseUserError

Row = Dict[str, Any]


def _unique_headers(headers: Iterable[Any]) -> Tuple[str, ...]:
    out = tuple(str(h) for h in headers)
    seen = set()
    dupes = []
    for h in out:
        if h in seen and h not in dupes:
            dupes.append(h)
        seen.add(h)
    if dupes:
        raise TableFuseUserError(
            "E_TABLE_HEADERS",
            "Table headers must be unique; duplicated: " + str(dupes) + ".",
            hint="Rename the duplicated columns before building the table.",
        )
    return out


@dataclass(frozen=True)
class Table:
    """One rectangular dataset: ordered unique headers and rows keyed by header.

    Rows are rebuilt on construction so every row carries exactly the table's
    headers (absent cells become None). Nothing downstream mutates a Table;
    joins and aggregates build new structures.
    """

    id: str
    name: str
    headers: Tuple[str, ...] = ()
    data: Tuple[Row, ...] = field(default=(), repr=False)

    # --- preview bounds ---
    preview_rows: int = field(default=5, compare=False, repr=False)
    preview_max_chars: int = field(default=6_000, compare=False, repr=False)

    def __post_init__(self) -> None:
        headers = _unique_headers(self.headers)
        rows: List[Row] = []
        for i, row in enumerate(self.data):
            if not isinstance(row, Mapping):
                raise TableFuseUserError(
                    "E_TABLE_ROW",
                    f"Row #{i} of table '{self.name}' is not a mapping (got {type(row).__name__}).",
                    hint="Rows are dicts keyed by header, e.g. {'country': 'USA', 'gdp': 100}.",
                )
            rows.append({h: row.get(h) for h in headers})
        object.__setattr__(self, "headers", headers)
        object.__setattr__(self, "data", tuple(rows))

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column(self, name: str) -> List[Any]:
        """Values of one column in row order; unknown columns read as all-None."""
        return [row.get(name) for row in self.data]

    # ---------- PETL bridge ----------
    @classmethod
    def from_petl(cls, tbl, *, id: str, name: str) -> "Table":
        try:
            header = list(etl.header(tbl))
            rows = [dict(r) for r in etl.dicts(tbl)]
        except TableFuseUserError:
            raise
        except Exception as e:
            raise TableFuseUserError(
                "E_TABLE_READ",
                f"Could not read table '{name}': {type(e).__name__}: {e}",
                hint="Check that the input is tabular and has a header row.",
            ) from e
        return cls(id=id, name=name, headers=tuple(header), data=tuple(rows))

    def to_petl(self):
        """Return a PETL view of this table (header row first)."""
        return etl.fromdicts(list(self.data), header=list(self.headers))

    # ---------- Peepholes / inspection ----------
    def preview(self, n: Optional[int] = None) -> str:
        """Bounded preview string."""
        n = n or self.preview_rows
        s = str(etl.look(etl.head(self.to_petl(), n)))
        if len(s) > self.preview_max_chars:
            s = s[: self.preview_max_chars] + "\n… (truncated)"
        return s

    def __str__(self) -> str:
        hdr = f'Table("{self.name}")  id={self.id}  rows={self.row_count}  columns={self.column_count}'
        if not self.headers:
            return hdr
        return hdr + "\nPreview:\n" + self.preview()
