from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import petl as etl

from tablefuse.errors import TableFuseUserError
from tablefuse.models.table import Table
from tablefuse.util import _infer_type_from_uri

# BOM prefix lets spreadsheet applications detect UTF-8.
CSV_EXPORT_OPTIONS: Dict[str, Any] = {"encoding": "utf-8-sig", "lineterminator": "\n"}


def table_to_csv(table: Table) -> str:
    """Delimited-text export of `table`: BOM, comma separated, minimal quoting."""
    src = etl.MemorySource()
    etl.tocsv(table.to_petl(), src, **CSV_EXPORT_OPTIONS)
    return src.getvalue().decode("utf-8")


def export_filename(table: Table) -> str:
    return re.sub(r"[^a-z0-9]", "_", table.name, flags=re.IGNORECASE) + ".csv"


@dataclass(frozen=True)
class Sink:
    uri: str
    type: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        inferred = self.type or _infer_type_from_uri(self.uri)
        object.__setattr__(self, "type", inferred)
        if self.type is None:
            raise TableFuseUserError(
                "E_SINK_TYPE_INFER",
                f"Could not infer Sink type from uri='{self.uri}'.",
                hint="Provide type explicitly, e.g. Sink('out.data', type='csv').",
            )

        if self.type != "csv":
            raise TableFuseUserError(
                "E_SINK_TYPE_UNSUPPORTED",
                f"Sink type '{self.type}' is not supported.",
                hint="Currently supported sink types: csv.",
            )

        # Fail fast: ensure the output directory exists and is writable before running the pipeline.
        parent = os.path.dirname(self.uri) or "."
        if not os.path.isdir(parent):
            raise TableFuseUserError(
                "E_SINK_DIR_NOT_FOUND",
                f"Output directory does not exist: '{parent}'.",
                hint="Create the directory or choose a different output path.",
            )
        if not os.access(parent, os.W_OK):
            raise TableFuseUserError(
                "E_SINK_NOT_WRITABLE",
                f"Output directory is not writable: '{parent}'.",
                hint="Check permissions or choose a different output location.",
            )

    def write(self, table: Table) -> None:
        opts = {**CSV_EXPORT_OPTIONS, **self.options}
        try:
            etl.tocsv(table.to_petl(), self.uri, **opts)
        except FileNotFoundError as e:
            parent = os.path.dirname(self.uri) or "."
            raise TableFuseUserError(
                "E_SINK_DIR_NOT_FOUND",
                f"Output directory does not exist: '{parent}'.",
                hint="Create the directory or choose a different output path.",
            ) from e
        except PermissionError as e:
            parent = os.path.dirname(self.uri) or "."
            raise TableFuseUserError(
                "E_SINK_NOT_WRITABLE",
                f"Cannot write to output directory: '{parent}'.",
                hint="Check permissions or choose a different output location.",
            ) from e
        except Exception as e:
            raise TableFuseUserError(
                "E_SINK_WRITE",
                f"Could not write sink '{self.uri}': {type(e).__name__}: {e}",
                hint="Check file permissions and Sink options (delimiter/encoding).",
            ) from e

    def __str__(self) -> str:
        return f'Sink("{self.uri}")  kind={self.type}'
