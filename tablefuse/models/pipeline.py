from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union, Optional, Dict, Any, Tuple

import yaml

from tablefuse.charts import ChartConfig, build_chart_data, build_chart_options
from tablefuse.errors import TableFuseUserError
from tablefuse.inference import ColumnType, classify_columns
from tablefuse.keys import JoinSuggestion
from tablefuse.models.sinks import Sink
from tablefuse.models.sources import Source
from tablefuse.models.steps import Join
from tablefuse.models.table import Table
from tablefuse.schema import _source_to_ir, _sink_to_ir, _join_to_ir, _chart_to_ir, _source_from_ir, \
    _step_from_ir, _normalize_ir, IR_VERSION

logger = logging.getLogger(__name__)

Step = Union[Join, ChartConfig, Sink]


@dataclass
class PipelineContext:
    tables: List[Table] = field(default_factory=list)
    column_types: Dict[str, Dict[str, ColumnType]] = field(default_factory=dict)
    suggestions: List[JoinSuggestion] = field(default_factory=list)
    table: Optional[Table] = None
    charts: List[Dict[str, Any]] = field(default_factory=list)
    checkpoints: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)


@dataclass
class Pipeline:
    """
    Sources -> Join? -> (ChartConfig | Sink)*

    Every source is loaded; the working table is the join result when a Join step
    is present, else the first loaded table.
    """
    sources: List[Source]
    steps: List[Step] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.sources, Source):
            self.sources = [self.sources]
        if not isinstance(self.sources, list) or not self.sources or not all(
            isinstance(s, Source) for s in self.sources
        ):
            raise TableFuseUserError(
                "E_PIPELINE_SOURCES",
                "Pipeline requires a non-empty list of Source objects.",
                hint="Example: Pipeline([Source('gdp.csv'), Source('population.csv')])",
            )

    def then(self, step: Step) -> "Pipeline":
        if not isinstance(step, (Join, ChartConfig, Sink)):
            raise TableFuseUserError(
                "E_PIPELINE_STEP",
                "Pipeline.then expects a Join, ChartConfig or Sink.",
                hint="Example: pipe.then(Join(how='left')).then(ChartConfig('bar', x_column='country', y_columns=['gdp'])).",
            )

        # Tables are combined once, before anything consumes the working table.
        if isinstance(step, Join):
            if any(isinstance(s, Join) for s in self.steps):
                raise TableFuseUserError(
                    "E_PIPELINE_ORDER",
                    "A pipeline can contain only one Join.",
                    hint="List every table to combine in a single Join(tables=[...]).",
                )
            if self.steps:
                raise TableFuseUserError(
                    "E_PIPELINE_ORDER",
                    "A Join must come before charts and sinks.",
                    hint="Add the Join first, then charts and sinks.",
                )

        return Pipeline(list(self.sources), self.steps + [step])

    def __str__(self) -> str:
        parts = ["Pipeline(sources=[" + ", ".join(s.uri for s in self.sources) + "])"]
        for s in self.steps:
            if isinstance(s, ChartConfig):
                parts.append(f"  -> Chart(type={s.chart_type}, x={s.x_column}, y={list(s.y_columns)})")
            else:
                parts.append(f"  -> {s}")
        return "\n".join(parts)

    def load(self) -> List[Table]:
        tables: List[Table] = []
        for src in self.sources:
            tables.extend(src.tables())
        ids = [t.id for t in tables]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise TableFuseUserError(
                "E_PIPELINE_TABLE_IDS",
                "Several sources produced the same table id(s): " + str(dupes) + ".",
                hint="Table ids derive from file names; rename one of the files.",
            )
        return tables

    def run(self) -> PipelineContext:
        ctx = PipelineContext()
        ctx.tables = self.load()
        if not ctx.tables:
            raise TableFuseUserError(
                "E_PIPELINE_EMPTY",
                "The sources did not contain any table.",
                hint="HTML sources need at least one <table> with data rows.",
            )
        for t in ctx.tables:
            ctx.column_types[t.id] = classify_columns(t)

        table = ctx.tables[0]
        for i, step in enumerate(self.steps):
            if isinstance(step, Join):
                table, ctx.suggestions = step.apply(ctx.tables)
                ctx.column_types[table.id] = classify_columns(table)
                ctx.checkpoints.append(
                    (
                        "step",
                        {
                            "index": i,
                            "kind": "join",
                            "how": step.how,
                            "columns": dict(step.columns) if step.columns is not None else None,
                            "header": list(table.headers),
                            "rows": table.row_count,
                        },
                    )
                )

            elif isinstance(step, ChartConfig):
                data = build_chart_data(table, step)
                ctx.charts.append(
                    {"config": step.to_dict(), "data": data, "options": build_chart_options(step)}
                )
                ctx.checkpoints.append(
                    ("step", {"index": i, "kind": "chart", "chartType": step.chart_type, "empty": data is None})
                )

            elif isinstance(step, Sink):
                step.write(table)
                ctx.checkpoints.append(
                    (
                        "step",
                        {
                            "index": i,
                            "kind": "sink",
                            "uri": step.uri,
                            "type": step.type,
                            "options": dict(step.options),
                        },
                    )
                )

            else:
                raise TableFuseUserError(
                    "E_PIPELINE_STEP_TYPE",
                    "Pipeline contains an unknown step type.",
                    hint="This should not happen if you only add steps via Pipeline.then().",
                )
            logger.info("pipeline step %d (%s) done", i, ctx.checkpoints[-1][1]["kind"])

        ctx.table = table
        return ctx

    def to_ir(self) -> Dict[str, Any]:
        """Serialize this pipeline to a YAML-friendly IR (dict)."""
        steps_ir: List[Dict[str, Any]] = []
        for s in self.steps:
            if isinstance(s, Join):
                steps_ir.append({"join": _join_to_ir(s)})
            elif isinstance(s, ChartConfig):
                steps_ir.append({"chart": _chart_to_ir(s)})
            elif isinstance(s, Sink):
                steps_ir.append({"sink": _sink_to_ir(s)})
            else:
                raise TableFuseUserError(
                    "E_IR_STEP",
                    "Pipeline contains an unknown step type; cannot serialize.",
                    hint="Only Join, ChartConfig and Sink steps are supported.",
                )

        return {
            "tablefuse": IR_VERSION,
            "pipeline": {
                "sources": [_source_to_ir(s) for s in self.sources],
                "steps": steps_ir,
            },
        }

    @classmethod
    def from_ir(cls, ir: Dict[str, Any], *, base_dir: Optional[Path] = None) -> "Pipeline":
        """Deserialize a pipeline from IR (dict)."""
        ir = _normalize_ir(ir, base_dir=base_dir)
        pipe = ir["pipeline"]

        out = Pipeline([_source_from_ir(s) for s in pipe["sources"]])
        for i, item in enumerate(pipe["steps"]):
            out = out.then(_step_from_ir(item, i))
        return out

    def to_yaml(self, path: Optional[Union[str, Path]] = None) -> str:
        """Dump IR to YAML string. If `path` is provided, also write the file."""
        text = yaml.safe_dump(self.to_ir(), sort_keys=False)
        if path is not None:
            p = Path(path)
            p.write_text(text, encoding="utf-8")
        return text

    @classmethod
    def from_yaml(cls, text_or_path: Union[str, Path], *, base_dir: Optional[Path] = None) -> "Pipeline":
        """Load pipeline from YAML string or file path."""
        # Accept path-like input for convenience
        if isinstance(text_or_path, Path) or (
            isinstance(text_or_path, str) and "\n" not in text_or_path and os.path.isfile(text_or_path)
        ):
            p = Path(text_or_path)
            base_dir = base_dir or p.parent
            text = p.read_text(encoding="utf-8")
        else:
            text = text_or_path
        try:
            ir = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TableFuseUserError(
                "E_YAML_PARSE",
                f"Failed to parse YAML: {e}",
                hint="Check indentation and quoting.",
            ) from e
        return cls.from_ir(ir, base_dir=base_dir)

    def save_yaml(self, path: Union[str, Path]) -> None:
        """Write YAML IR to a file."""
        Path(path).write_text(self.to_yaml(), encoding="utf-8")

    @classmethod
    def load_yaml(cls, path: Union[str, Path]) -> "Pipeline":
        """Load YAML IR from a file."""
        p = Path(path)
        return cls.from_yaml(p.read_text(encoding="utf-8"), base_dir=p.parent)
