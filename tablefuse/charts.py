"""Chart-ready aggregates derived from a single Table.

`build_chart_data(table, config)` returns the labels/datasets structure a chart
renderer consumes (Chart.js shape, camelCase keys). Builders are registered per
chart kind; every builder reads numbers through `coerce_number`, so a cell that
does not parse is excluded (or zero-filled where the chart kind calls for it),
never an error.
"""
from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tablefuse.errors import TableFuseUserError
from tablefuse.inference import categorical_columns, numeric_columns
from tablefuse.models.table import Row, Table
from tablefuse.util import coerce_number

COLOR_SCHEMES: Mapping = MappingProxyType({
    "default": (
        "rgba(54, 162, 235, 0.8)",
        "rgba(255, 99, 132, 0.8)",
        "rgba(75, 192, 192, 0.8)",
        "rgba(255, 206, 86, 0.8)",
        "rgba(153, 102, 255, 0.8)",
        "rgba(255, 159, 64, 0.8)",
        "rgba(199, 199, 199, 0.8)",
        "rgba(83, 102, 255, 0.8)",
        "rgba(255, 99, 255, 0.8)",
        "rgba(99, 255, 132, 0.8)",
    ),
    "pastel": (
        "rgba(255, 179, 186, 0.8)",
        "rgba(255, 223, 186, 0.8)",
        "rgba(255, 255, 186, 0.8)",
        "rgba(186, 255, 201, 0.8)",
        "rgba(186, 225, 255, 0.8)",
        "rgba(218, 186, 255, 0.8)",
        "rgba(255, 186, 243, 0.8)",
        "rgba(186, 255, 255, 0.8)",
    ),
    "bold": (
        "rgba(231, 76, 60, 0.9)",
        "rgba(46, 204, 113, 0.9)",
        "rgba(52, 152, 219, 0.9)",
        "rgba(155, 89, 182, 0.9)",
        "rgba(241, 196, 15, 0.9)",
        "rgba(230, 126, 34, 0.9)",
        "rgba(26, 188, 156, 0.9)",
        "rgba(52, 73, 94, 0.9)",
    ),
    "monochrome": (
        "rgba(0, 0, 0, 0.9)",
        "rgba(50, 50, 50, 0.8)",
        "rgba(100, 100, 100, 0.7)",
        "rgba(150, 150, 150, 0.6)",
        "rgba(200, 200, 200, 0.5)",
    ),
})

CHART_TYPES: Tuple[Tuple[str, str], ...] = (
    ("bar", "Bar Chart"),
    ("line", "Line Chart"),
    ("pie", "Pie Chart"),
    ("doughnut", "Doughnut"),
    ("scatter", "Scatter Plot"),
    ("bubble", "Bubble Chart"),
    ("radar", "Radar Chart"),
    ("polarArea", "Polar Area"),
    ("histogram", "Histogram"),
    ("boxplot", "Box Plot"),
)
CHART_TYPE_NAMES: Tuple[str, ...] = tuple(v for v, _ in CHART_TYPES)

MAX_HISTOGRAM_BINS = 20
DEFAULT_BUBBLE_RADIUS = 5

_ALPHA = re.compile(r"[\d.]+\)$")


def border_color(color: str) -> str:
    """Opaque variant of an rgba() palette colour."""
    return _ALPHA.sub("1)", color)


def resolve_colors(scheme: Optional[str]) -> Tuple[str, ...]:
    return COLOR_SCHEMES.get(scheme or "default") or COLOR_SCHEMES["default"]


# ---------------- configuration ----------------

_CONFIG_KEYS = {
    "chartType": "chart_type",
    "xColumn": "x_column",
    "yColumns": "y_columns",
    "colorColumn": "color_column",
    "sizeColumn": "size_column",
    "labelColumn": "label_column",
    "colorScheme": "color_scheme",
    "title": "title",
    "showLegend": "show_legend",
    "showGrid": "show_grid",
}


@dataclass(frozen=True)
class ChartConfig:
    chart_type: str = "bar"
    x_column: Optional[str] = None
    y_columns: Tuple[str, ...] = field(default_factory=tuple)
    color_column: Optional[str] = None
    size_column: Optional[str] = None
    label_column: Optional[str] = None
    color_scheme: str = "default"
    title: str = ""
    show_legend: bool = True
    show_grid: bool = True

    def __post_init__(self) -> None:
        if self.chart_type not in CHART_TYPE_NAMES:
            raise TableFuseUserError(
                "E_CHART_TYPE",
                f"Unsupported chart type {self.chart_type!r}.",
                hint="Supported chart types: " + ", ".join(CHART_TYPE_NAMES),
            )
        ys = self.y_columns
        if isinstance(ys, str) or not isinstance(ys, (list, tuple)) or not all(isinstance(y, str) for y in ys):
            raise TableFuseUserError(
                "E_CHART_Y_COLUMNS",
                "y_columns must be a list of column names.",
                hint="Example: ChartConfig('bar', x_column='country', y_columns=['gdp'])",
            )
        object.__setattr__(self, "y_columns", tuple(ys))

    @property
    def colors(self) -> Tuple[str, ...]:
        return resolve_colors(self.color_scheme)

    def to_dict(self) -> Dict[str, Any]:
        d = {camel: getattr(self, snake) for camel, snake in _CONFIG_KEYS.items()}
        d["yColumns"] = list(self.y_columns)
        return d

    @classmethod
    def from_dict(cls, d: Any) -> "ChartConfig":
        if not isinstance(d, Mapping):
            raise TableFuseUserError(
                "E_CHART_CONFIG",
                "Chart configuration must be a mapping.",
                hint="Example: {chartType: bar, xColumn: country, yColumns: [gdp]}",
            )
        unknown = [k for k in d if k not in _CONFIG_KEYS]
        if unknown:
            raise TableFuseUserError(
                "E_CHART_CONFIG",
                "Unknown chart option(s): " + str(unknown) + ".",
                hint="Known options: " + ", ".join(_CONFIG_KEYS),
            )
        kwargs = {_CONFIG_KEYS[k]: v for k, v in d.items()}
        if kwargs.get("y_columns") is None:
            kwargs["y_columns"] = ()
        return cls(**kwargs)


def default_chart_config(table: Table, chart_type: str = "bar") -> ChartConfig:
    """A starting configuration: first categorical column on x, first numeric on y."""
    headers = list(table.headers)
    numeric = numeric_columns(table) or headers
    categorical = categorical_columns(table) or headers
    x = categorical[0] if categorical else None
    return ChartConfig(chart_type, x_column=x, y_columns=tuple(numeric[:1]))


# ---------------- statistics ----------------

def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of an ascending, non-empty sequence."""
    index = (p / 100) * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return sorted_values[lower]
    lo, hi = sorted_values[lower], sorted_values[upper]
    return lo + (hi - lo) * (index - lower)


def box_stats(values: Sequence[float]) -> Optional[Dict[str, float]]:
    """Five-number summary with Tukey whiskers clipped to the observed range."""
    ordered = sorted(values)
    if not ordered:
        return None
    q1 = percentile(ordered, 25)
    median = percentile(ordered, 50)
    q3 = percentile(ordered, 75)
    iqr = q3 - q1
    return {
        "min": max(ordered[0], q1 - 1.5 * iqr),
        "q1": q1,
        "median": median,
        "q3": q3,
        "max": min(ordered[-1], q3 + 1.5 * iqr),
    }


def histogram_bins(values: Sequence[float]) -> Tuple[List[str], List[int]]:
    """Bin labels and counts; at most MAX_HISTOGRAM_BINS bins of equal width."""
    if not values:
        return [], []
    lo, hi = min(values), max(values)
    bin_count = min(MAX_HISTOGRAM_BINS, math.ceil(math.sqrt(len(values))))
    # Halved operands keep the span finite when hi - lo exceeds the float range.
    half_width = (hi / 2 - lo / 2) / bin_count or 0.5
    width = half_width * 2

    labels = []
    for i in range(bin_count):
        start = lo + i * width
        labels.append(f"{start:.1f}-{start + width:.1f}")

    counts = [0] * bin_count
    for v in values:
        idx = math.floor((v / 2 - lo / 2) / half_width)
        counts[min(max(idx, 0), bin_count - 1)] += 1
    return labels, counts


# ---------------- builders ----------------

ChartBuilder = Callable[[Table, ChartConfig, Tuple[str, ...]], Dict[str, Any]]

CHART_BUILDERS: Dict[str, ChartBuilder] = {}


def register_chart(*chart_types: str) -> Callable[[ChartBuilder], ChartBuilder]:
    """Decorator to register a builder under one or more chart types."""

    def deco(fn: ChartBuilder) -> ChartBuilder:
        for ct in chart_types:
            CHART_BUILDERS[ct] = fn
        return fn

    return deco


def _cell(row: Row, column: Optional[str]) -> Any:
    v = row.get(column) if column else None
    return "" if v is None else v


def _number_or_zero(row: Row, column: str) -> float:
    v = coerce_number(row.get(column))
    return 0 if v is None else v


def _finite_numbers(table: Table, column: str) -> List[float]:
    out = []
    for v in table.column(column):
        n = coerce_number(v)
        if n is not None and math.isfinite(n):
            out.append(n)
    return out


def _group_key(value: Any) -> Tuple[type, Any]:
    # True, 1 and 1.0 hash alike; distinct raw values must stay distinct groups.
    return type(value), value


def _distinct(values) -> List[Any]:
    seen: Dict[Tuple[type, Any], Any] = {}
    for v in values:
        seen.setdefault(_group_key(v), v)
    return list(seen.values())


@register_chart("bar", "line", "radar")
def _build_series(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    if config.color_column and config.chart_type in ("bar", "line"):
        return _build_grouped(table, config, colors)

    line = config.chart_type == "line"
    datasets = []
    for i, y in enumerate(config.y_columns):
        color = colors[i % len(colors)]
        datasets.append({
            "label": y,
            "data": [_number_or_zero(row, y) for row in table.data],
            "backgroundColor": color,
            "borderColor": border_color(color),
            "borderWidth": 2 if line else 1,
            "fill": not line,
            "tension": 0.1,
        })
    return {"labels": [_cell(row, config.x_column) for row in table.data], "datasets": datasets}


def _build_grouped(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    """Dense label x group matrix from the first y column; gaps read as 0."""
    x, group, y = config.x_column, config.color_column, config.y_columns[0]
    labels = _distinct(_cell(row, x) for row in table.data)
    groups = _distinct(_cell(row, group) for row in table.data)

    first: Dict[Tuple[Any, Any], Row] = {}
    for row in table.data:
        first.setdefault((_group_key(_cell(row, x)), _group_key(_cell(row, group))), row)

    line = config.chart_type == "line"
    datasets = []
    for i, g in enumerate(groups):
        color = colors[i % len(colors)]
        data = []
        for label in labels:
            row = first.get((_group_key(label), _group_key(g)))
            data.append(0 if row is None else _number_or_zero(row, y))
        datasets.append({
            "label": str(g),
            "data": data,
            "backgroundColor": color,
            "borderColor": border_color(color),
            "borderWidth": 2 if line else 1,
            "fill": not line,
            "tension": 0.1,
        })
    return {"labels": labels, "datasets": datasets}


@register_chart("pie", "doughnut", "polarArea")
def _build_slices(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    y = config.y_columns[0]
    labels = [_cell(row, config.x_column) for row in table.data]
    fills = [colors[i % len(colors)] for i in range(len(labels))]
    return {
        "labels": labels,
        "datasets": [{
            "label": y,
            "data": [_number_or_zero(row, y) for row in table.data],
            "backgroundColor": fills,
            "borderColor": [border_color(c) for c in fills],
            "borderWidth": 1,
        }],
    }


def _bubble_radius(row: Row, size_column: Optional[str]) -> float:
    size = coerce_number(row.get(size_column)) if size_column else None
    if size is None or size < 0:
        return DEFAULT_BUBBLE_RADIUS
    return math.sqrt(size) * 2


@register_chart("scatter", "bubble")
def _build_points(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    y = config.y_columns[0]
    bubble = config.chart_type == "bubble"

    def _point(row: Row) -> Optional[Dict[str, Any]]:
        xv = coerce_number(row.get(config.x_column))
        yv = coerce_number(row.get(y))
        if xv is None or yv is None:
            return None
        p: Dict[str, Any] = {"x": xv, "y": yv}
        if bubble:
            p["r"] = _bubble_radius(row, config.size_column)
        p["label"] = row.get(config.label_column) if config.label_column else None
        p["rawData"] = dict(row)
        return p

    if config.color_column:
        partitions: Dict[Tuple[type, Any], Tuple[Any, List[Row]]] = {}
        for row in table.data:
            g = _cell(row, config.color_column)
            partitions.setdefault(_group_key(g), (g, []))[1].append(row)
        groups = [(str(g), rows) for g, rows in partitions.values()]
    else:
        groups = [(y, list(table.data))]

    datasets = []
    for i, (label, rows) in enumerate(groups):
        color = colors[i % len(colors)]
        points = [p for p in (_point(r) for r in rows) if p is not None]
        datasets.append({
            "label": label,
            "data": points,
            "backgroundColor": color,
            "borderColor": border_color(color),
        })
    return {"datasets": datasets}


@register_chart("histogram")
def _build_histogram(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    column = config.y_columns[0]
    labels, counts = histogram_bins(_finite_numbers(table, column))
    if not counts:
        return {"labels": [], "datasets": []}
    return {
        "labels": labels,
        "datasets": [{
            "label": f"{column} Distribution",
            "data": counts,
            "backgroundColor": colors[0],
            "borderColor": border_color(colors[0]),
            "borderWidth": 1,
        }],
    }


@register_chart("boxplot")
def _build_boxplot(table: Table, config: ChartConfig, colors: Tuple[str, ...]) -> Dict[str, Any]:
    datasets = []
    for i, column in enumerate(config.y_columns):
        stats = box_stats(_finite_numbers(table, column))
        if stats is None:
            datasets.append({"label": column, "data": []})
            continue
        datasets.append({"label": column, **stats, "backgroundColor": colors[i % len(colors)]})
    return {"datasets": datasets, "isBoxPlot": True}


def build_chart_data(table: Table, config: ChartConfig) -> Optional[Dict[str, Any]]:
    """Series data for `config.chart_type`, or None when there is nothing to plot."""
    if not config.x_column or not config.y_columns:
        return None
    builder = CHART_BUILDERS[config.chart_type]
    return builder(table, config, config.colors)


def build_chart_options(config: ChartConfig) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "responsive": True,
        "maintainAspectRatio": False,
        "plugins": {
            "legend": {"display": config.show_legend, "position": "top"},
            "title": {
                "display": bool(config.title),
                "text": config.title or "",
                "font": {"size": 16},
            },
        },
    }
    if config.chart_type in ("bar", "line", "scatter", "bubble", "histogram"):
        options["scales"] = {
            "x": {"grid": {"display": config.show_grid}},
            "y": {"grid": {"display": config.show_grid}, "beginAtZero": True},
        }
    return options
