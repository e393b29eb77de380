from __future__ import annotations

from pathlib import Path
from typing import Dict, Any, Optional, List

from tablefuse.charts import ChartConfig
from tablefuse.errors import TableFuseUserError
from tablefuse.models.sinks import Sink
from tablefuse.models.sources import Source
from tablefuse.models.steps import Join
from tablefuse.util import _norm_path

IR_VERSION = 0


def _source_to_ir(src: Source) -> Dict[str, Any]:
    d: Dict[str, Any] = {"uri": src.uri}
    if src.type is not None:
        d["type"] = src.type
    if src.options:
        d["options"] = dict(src.options)
    return d


def _sink_to_ir(sink: Sink) -> Dict[str, Any]:
    d: Dict[str, Any] = {"uri": sink.uri}
    if sink.type is not None:
        d["type"] = sink.type
    if sink.options:
        d["options"] = dict(sink.options)
    return d


def _join_to_ir(j: Join) -> Dict[str, Any]:
    d: Dict[str, Any] = {"how": j.how}
    if j.columns is not None:
        d["columns"] = dict(j.columns)
    if j.tables is not None:
        d["tables"] = list(j.tables)
    return d


def _chart_to_ir(c: ChartConfig) -> Dict[str, Any]:
    return c.to_dict()


def _source_from_ir(d: Dict[str, Any]) -> Source:
    if not isinstance(d, dict):
        raise TableFuseUserError(
            "E_IR_SOURCE",
            "IR source must be a mapping.",
            hint="Example: sources: [{uri: gdp.csv, type: csv}]",
        )
    uri = d.get("uri")
    if not isinstance(uri, str) or not uri:
        raise TableFuseUserError(
            "E_IR_SOURCE",
            "IR source requires a non-empty 'uri' string.",
            hint="Example: sources: [{uri: gdp.csv}]",
        )
    return Source(
        uri,
        type=d.get("type"),
        options=d.get("options") or {},
    )


def _sink_from_ir(d: Dict[str, Any]) -> Sink:
    if not isinstance(d, dict):
        raise TableFuseUserError(
            "E_IR_SINK",
            "IR sink must be a mapping.",
            hint="Example: {sink: {uri: out.csv}}",
        )
    uri = d.get("uri")
    if not isinstance(uri, str) or not uri:
        raise TableFuseUserError(
            "E_IR_SINK",
            "IR sink requires a non-empty 'uri' string.",
            hint="Example: {sink: {uri: out.csv}}",
        )
    return Sink(
        uri,
        type=d.get("type"),
        options=d.get("options") or {},
    )


def _join_from_ir(d: Dict[str, Any]) -> Join:
    if not isinstance(d, dict):
        raise TableFuseUserError(
            "E_IR_JOIN",
            "IR join must be a mapping.",
            hint="Example: {join: {how: inner, columns: {gdp:csv-0: country, pop:csv-0: Country}}}",
        )
    unknown = [k for k in d if k not in ("how", "columns", "tables")]
    if unknown:
        raise TableFuseUserError(
            "E_IR_JOIN",
            "Unknown join option(s): " + str(unknown) + ".",
            hint="Known options: how, columns, tables",
        )
    return Join(columns=d.get("columns"), how=d.get("how", "inner"), tables=d.get("tables"))


def _chart_from_ir(d: Dict[str, Any]) -> ChartConfig:
    return ChartConfig.from_dict(d)


STEP_KINDS = ("join", "chart", "sink")


def _step_from_ir(item: Any, i: int):
    if not isinstance(item, dict) or len(item) != 1:
        raise TableFuseUserError(
            "E_IR_STEP",
            f"IR step #{i} must be a mapping with exactly one key: 'join', 'chart' or 'sink'.",
            hint=str(item),
        )
    if "join" in item:
        return _join_from_ir(item["join"])
    if "chart" in item:
        return _chart_from_ir(item["chart"])
    if "sink" in item:
        return _sink_from_ir(item["sink"])
    raise TableFuseUserError(
        "E_IR_STEP",
        f"IR step #{i} must be 'join', 'chart' or 'sink'.",
        hint="Example: {chart: {chartType: bar, xColumn: country, yColumns: [gdp]}}",
    )


def _normalize_ir(ir: Any, *, base_dir: Optional[Path]) -> Dict[str, Any]:
    """Normalize IR structure and paths.

    Guarantees:
      - returns a dict with keys: tablefuse, pipeline
      - every pipeline.sources[].uri is normalized
      - any sink.uri is normalized
      - missing/None options become {}

    This does not change semantics; it makes the IR portable and deterministic.
    """
    if not isinstance(ir, dict):
        raise TableFuseUserError(
            "E_IR_ROOT",
            "IR must be a mapping at the root.",
            hint="Expected keys: tablefuse, pipeline.",
        )

    ir2: Dict[str, Any] = dict(ir)

    # Default version
    if ir2.get("tablefuse") is None:
        ir2["tablefuse"] = IR_VERSION

    version = ir2.get("tablefuse")
    if version != IR_VERSION:
        raise TableFuseUserError(
            "E_IR_VERSION",
            f"Unsupported IR version: {version!r}.",
            hint=f"Supported: tablefuse: {IR_VERSION}",
        )

    pipe = ir2.get("pipeline")
    if not isinstance(pipe, dict):
        raise TableFuseUserError(
            "E_IR_PIPELINE",
            "IR requires a 'pipeline' mapping.",
            hint="Example: {tablefuse: 0, pipeline: {sources: [...], steps: [...]}}",
        )

    pipe2: Dict[str, Any] = dict(pipe)

    sources = pipe2.get("sources")
    if not isinstance(sources, list) or not sources:
        raise TableFuseUserError(
            "E_IR_SOURCE",
            "IR pipeline.sources must be a non-empty list.",
            hint="Example: sources: [{uri: gdp.csv}, {uri: population.csv}]",
        )
    norm_sources: List[Any] = []
    for s in sources:
        if isinstance(s, dict):
            s2: Dict[str, Any] = dict(s)
            u = s2.get("uri")
            if isinstance(u, str):
                s2["uri"] = _norm_path(u, base_dir=base_dir)
            if "options" in s2 and s2["options"] is None:
                s2["options"] = {}
            norm_sources.append(s2)
        else:
            # rejected with a proper error by _source_from_ir
            norm_sources.append(s)
    pipe2["sources"] = norm_sources

    steps = pipe2.get("steps")
    if steps is None:
        steps = []
    if not isinstance(steps, list):
        raise TableFuseUserError(
            "E_IR_STEPS",
            "IR pipeline.steps must be a list.",
            hint="Example: steps: [{join: {...}}, {chart: {...}}, {sink: {...}}]",
        )

    norm_steps: List[Dict[str, Any]] = []
    for i, item in enumerate(steps):
        if not isinstance(item, dict) or len(item) != 1:
            raise TableFuseUserError(
                "E_IR_STEP",
                f"IR step #{i} must be a mapping with exactly one key: 'join', 'chart' or 'sink'.",
                hint=str(item),
            )
        (kind, body), = item.items()
        if kind not in STEP_KINDS:
            raise TableFuseUserError(
                "E_IR_STEP",
                f"IR step #{i} must be 'join', 'chart' or 'sink'.",
                hint="Example: {chart: {chartType: bar, xColumn: country, yColumns: [gdp]}}",
            )
        if kind == "sink" and isinstance(body, dict):
            body = dict(body)
            su = body.get("uri")
            if isinstance(su, str):
                body["uri"] = _norm_path(su, base_dir=base_dir)
            if "options" in body and body["options"] is None:
                body["options"] = {}
        norm_steps.append({kind: body})

    pipe2["steps"] = norm_steps

    return {"tablefuse": IR_VERSION, "pipeline": pipe2}
