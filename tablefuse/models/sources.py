from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tablefuse.errors import TableFuseUserError
from tablefuse.models.table import Table
from tablefuse.parsers import parse_csv, parse_html_tables
from tablefuse.util import _infer_type_from_uri

logger = logging.getLogger(__name__)

SUPPORTED_SOURCE_TYPES = ("csv", "html")


@dataclass(frozen=True)
class Source:
    """A local file holding one CSV table or any number of HTML tables.

    Table ids are prefixed with the file stem ("gdp:csv-0", "report:table-2") so
    tables loaded from different files never share an id.
    """

    uri: str
    type: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        uri = self.uri
        if isinstance(uri, os.PathLike):
            uri = os.fspath(uri)
        if not isinstance(uri, str) or not uri:
            raise TableFuseUserError(
                "E_SOURCE_URI_TYPE",
                f"Source uri must be a non-empty string or path (got {type(self.uri).__name__}).",
                hint="Example: Source('data/gdp.csv')",
            )
        object.__setattr__(self, "uri", uri)

        inferred = self.type or _infer_type_from_uri(uri)
        object.__setattr__(self, "type", inferred)
        if self.type is None:
            raise TableFuseUserError(
                "E_SOURCE_TYPE_INFER",
                f"Could not infer Source type from uri='{uri}'.",
                hint="Provide type explicitly, e.g. Source('export.dat', type='csv').",
            )
        if self.type not in SUPPORTED_SOURCE_TYPES:
            raise TableFuseUserError(
                "E_SOURCE_TYPE_UNSUPPORTED",
                f"Source type '{self.type}' is not supported.",
                hint="Currently supported source types: " + ", ".join(SUPPORTED_SOURCE_TYPES) + ".",
            )

        # Fail fast: a missing file is a configuration error, not an empty table.
        if not os.path.isfile(uri):
            raise TableFuseUserError(
                "E_SOURCE_NOT_FOUND",
                f"Source file not found: '{uri}'.",
                hint="Check the path, or resolve it relative to the recipe file.",
            )

    @property
    def stem(self) -> str:
        return Path(self.uri).stem

    def _read_text(self) -> str:
        encoding = self.options.get("encoding", "utf-8")
        try:
            with open(self.uri, encoding=encoding) as fh:
                return fh.read()
        except FileNotFoundError as e:
            raise TableFuseUserError(
                "E_SOURCE_NOT_FOUND",
                f"Source file not found: '{self.uri}'.",
                hint="Check the path, or resolve it relative to the recipe file.",
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise TableFuseUserError(
                "E_SOURCE_READ",
                f"Could not read source '{self.uri}': {type(e).__name__}: {e}",
                hint="Check file permissions and the 'encoding' option.",
            ) from e

    def tables(self) -> List[Table]:
        """Parse the file into Tables (ids prefixed with the file stem)."""
        text = self._read_text()
        if self.type == "csv":
            opts = {k: v for k, v in self.options.items() if k != "encoding"}
            parsed = parse_csv(text, id="csv-0", name=self.stem, **opts)
        else:
            parsed = parse_html_tables(text)

        out = [Table(id=f"{self.stem}:{t.id}", name=t.name, headers=t.headers, data=t.data) for t in parsed]
        logger.debug("loaded %d table(s) from %s", len(out), self.uri)
        return out

    def __str__(self) -> str:
        return f'Source("{self.uri}")  kind={self.type}'
