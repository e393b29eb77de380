import pytest

from tablefuse import ChartConfig, Table, TableFuseUserError, build_chart_data, build_chart_options, default_chart_config
from tablefuse.charts import (
    CHART_BUILDERS,
    CHART_TYPE_NAMES,
    COLOR_SCHEMES,
    border_color,
    box_stats,
    histogram_bins,
    percentile,
)


def _tbl(headers, *rows):
    return Table("t", "T", tuple(headers), tuple(dict(zip(headers, r)) for r in rows))


COUNTRIES = _tbl(
    ["country", "gdp", "pop"],
    ("USA", "1,000", 5),
    ("France", "n/a", 3),
    ("Peru", 20, None),
)


# ---------- configuration ----------
def test_every_chart_type_has_a_builder():
    assert set(CHART_TYPE_NAMES) == set(CHART_BUILDERS)


def test_chart_config_rejects_unknown_type():
    with pytest.raises(TableFuseUserError) as ex:
        ChartConfig("sunburst")
    assert getattr(ex.value, "code", None) == "E_CHART_TYPE"


def test_chart_config_rejects_string_y_columns():
    with pytest.raises(TableFuseUserError) as ex:
        ChartConfig("bar", x_column="country", y_columns="gdp")
    assert getattr(ex.value, "code", None) == "E_CHART_Y_COLUMNS"


def test_chart_config_dict_form_uses_camel_case():
    c = ChartConfig("scatter", x_column="gdp", y_columns=["pop"], color_column="continent", title="GDP")
    d = c.to_dict()

    assert d["chartType"] == "scatter"
    assert d["yColumns"] == ["pop"]
    assert ChartConfig.from_dict(d) == c


def test_chart_config_from_dict_rejects_unknown_keys():
    with pytest.raises(TableFuseUserError) as ex:
        ChartConfig.from_dict({"chartType": "bar", "xcolumn": "a"})
    assert getattr(ex.value, "code", None) == "E_CHART_CONFIG"

    with pytest.raises(TableFuseUserError) as ex:
        ChartConfig.from_dict(["bar"])
    assert getattr(ex.value, "code", None) == "E_CHART_CONFIG"


def test_unknown_color_scheme_falls_back_to_default():
    assert ChartConfig(color_scheme="neon").colors == COLOR_SCHEMES["default"]
    assert ChartConfig(color_scheme="pastel").colors == COLOR_SCHEMES["pastel"]


def test_border_color_is_opaque():
    assert border_color("rgba(54, 162, 235, 0.8)") == "rgba(54, 162, 235, 1)"


def test_default_config_picks_first_categorical_and_numeric():
    t = _tbl(["year", "region", "sales"], (2020, "EU", 1), (2021, "US", 2))
    c = default_chart_config(t)

    assert c.chart_type == "bar"
    assert c.x_column == "region"
    assert c.y_columns == ("year",)


# ---------- nothing to plot ----------
def test_missing_axis_yields_none():
    assert build_chart_data(COUNTRIES, ChartConfig("bar", y_columns=["gdp"])) is None
    assert build_chart_data(COUNTRIES, ChartConfig("bar", x_column="country")) is None


# ---------- categorical series ----------
def test_bar_series_zero_fill_unparseable_cells():
    data = build_chart_data(COUNTRIES, ChartConfig("bar", x_column="country", y_columns=["gdp", "pop"]))

    assert data["labels"] == ["USA", "France", "Peru"]
    assert [d["label"] for d in data["datasets"]] == ["gdp", "pop"]
    assert data["datasets"][0]["data"] == [1000.0, 0, 20]
    assert data["datasets"][1]["data"] == [5, 3, 0]
    assert data["datasets"][0]["backgroundColor"] != data["datasets"][1]["backgroundColor"]


def test_line_series_are_unfilled():
    data = build_chart_data(COUNTRIES, ChartConfig("line", x_column="country", y_columns=["pop"]))
    ds = data["datasets"][0]
    assert ds["fill"] is False
    assert ds["borderWidth"] == 2


def test_pie_uses_first_y_column_with_one_color_per_slice():
    data = build_chart_data(COUNTRIES, ChartConfig("pie", x_column="country", y_columns=["pop", "gdp"]))

    (ds,) = data["datasets"]
    assert ds["label"] == "pop"
    assert ds["data"] == [5, 3, 0]
    assert len(ds["backgroundColor"]) == 3
    assert len(set(ds["backgroundColor"])) == 3


def test_grouped_bar_is_dense_label_by_group_matrix():
    t = _tbl(
        ["year", "region", "sales"],
        (2020, "EU", 10),
        (2020, "US", 12),
        (2021, "EU", 11),
        (2020, "EU", 99),
    )
    data = build_chart_data(
        t, ChartConfig("bar", x_column="year", y_columns=["sales"], color_column="region")
    )

    assert data["labels"] == [2020, 2021]
    assert [d["label"] for d in data["datasets"]] == ["EU", "US"]
    assert data["datasets"][0]["data"] == [10, 11]
    assert data["datasets"][1]["data"] == [12, 0]
    assert all(len(d["data"]) == len(data["labels"]) for d in data["datasets"])


# ---------- points ----------
def test_scatter_drops_unparseable_points():
    t = _tbl(["gdp", "pop"], (1, 2), ("x", 3), ("4", "5"))
    data = build_chart_data(t, ChartConfig("scatter", x_column="gdp", y_columns=["pop"]))

    (ds,) = data["datasets"]
    assert ds["label"] == "pop"
    assert [(p["x"], p["y"]) for p in ds["data"]] == [(1, 2), (4.0, 5.0)]
    assert ds["data"][1]["rawData"] == {"gdp": "4", "pop": "5"}
    assert "r" not in ds["data"][0]


def test_scatter_groups_by_color_column_in_first_seen_order():
    t = _tbl(["x", "y", "continent"], (1, 1, "Asia"), (2, 2, "Europe"), (3, 3, "Asia"))
    data = build_chart_data(t, ChartConfig("scatter", x_column="x", y_columns=["y"], color_column="continent"))

    assert [d["label"] for d in data["datasets"]] == ["Asia", "Europe"]
    assert [len(d["data"]) for d in data["datasets"]] == [2, 1]


def test_bubble_radius_from_size_column():
    t = _tbl(["x", "y", "size", "name"], (1, 1, 16, "a"), (2, 2, None, "b"), (3, 3, -4, "c"))
    data = build_chart_data(
        t,
        ChartConfig("bubble", x_column="x", y_columns=["y"], size_column="size", label_column="name"),
    )

    points = data["datasets"][0]["data"]
    assert [p["r"] for p in points] == [8.0, 5, 5]
    assert [p["label"] for p in points] == ["a", "b", "c"]


# ---------- distributions ----------
def test_histogram_bins_scenario():
    """[1, 1, 1, 1, 10] uses ceil(sqrt(5)) = 3 bins; the maximum lands in the last bin."""
    labels, counts = histogram_bins([1, 1, 1, 1, 10])

    assert labels == ["1.0-4.0", "4.0-7.0", "7.0-10.0"]
    assert counts == [4, 0, 1]


def test_histogram_constant_values_use_unit_width():
    labels, counts = histogram_bins([5, 5, 5, 5])
    assert labels == ["5.0-6.0", "6.0-7.0"]
    assert counts == [4, 0]


def test_histogram_bin_count_is_capped():
    labels, counts = histogram_bins(list(range(1000)))
    assert len(labels) == 20
    assert sum(counts) == 1000


def test_histogram_chart_counts_only_finite_numbers():
    t = _tbl(["country", "v"], ("a", 1), ("b", "x"), ("c", "Infinity"), ("d", 3), ("e", None))
    data = build_chart_data(t, ChartConfig("histogram", x_column="country", y_columns=["v"]))

    (ds,) = data["datasets"]
    assert ds["label"] == "v Distribution"
    assert sum(ds["data"]) == 2


def test_histogram_chart_without_numbers_is_empty():
    t = _tbl(["country", "v"], ("a", "x"))
    data = build_chart_data(t, ChartConfig("histogram", x_column="country", y_columns=["v"]))
    assert data == {"labels": [], "datasets": []}


def test_percentile_interpolates_linearly():
    values = [1, 2, 3, 4]
    assert percentile(values, 0) == 1
    assert percentile(values, 100) == 4
    assert percentile(values, 50) == pytest.approx(2.5)


def test_box_stats_tukey_whiskers():
    stats = box_stats([100, 1, 2, 3, 4, 5, 6, 7, 8, 9])

    assert stats["q1"] == pytest.approx(3.25)
    assert stats["median"] == pytest.approx(5.5)
    assert stats["q3"] == pytest.approx(7.75)
    assert stats["min"] == 1
    assert stats["max"] == pytest.approx(14.5)
    assert stats["min"] <= stats["q1"] <= stats["median"] <= stats["q3"] <= stats["max"]


def test_boxplot_marks_empty_columns():
    t = _tbl(["country", "v", "notes"], ("a", 1, None), ("b", 2, "n/a"), ("c", 3, None))
    data = build_chart_data(t, ChartConfig("boxplot", x_column="country", y_columns=["v", "notes"]))

    assert data["isBoxPlot"] is True
    first, second = data["datasets"]
    assert first["label"] == "v"
    assert first["median"] == 2
    assert second == {"label": "notes", "data": []}


# ---------- options ----------
def test_options_scales_only_for_axis_charts():
    bar = build_chart_options(ChartConfig("bar", show_grid=False, title="GDP"))
    pie = build_chart_options(ChartConfig("pie"))

    assert bar["scales"]["x"]["grid"]["display"] is False
    assert bar["scales"]["y"]["beginAtZero"] is True
    assert bar["plugins"]["title"] == {"display": True, "text": "GDP", "font": {"size": 16}}
    assert "scales" not in pie
    assert pie["plugins"]["title"]["display"] is False


# ---------- edge values ----------
def test_histogram_span_beyond_float_range():
    """Finite values whose range overflows a float still bin without error."""
    labels, counts = histogram_bins([1e308, -1e308, 0])

    assert len(labels) == 2
    assert counts == [1, 2]


def test_histogram_chart_with_extreme_values():
    t = _tbl(["country", "v"], ("a", 1e308), ("b", -1e308), ("c", 0))
    data = build_chart_data(t, ChartConfig("histogram", x_column="country", y_columns=["v"]))
    assert sum(data["datasets"][0]["data"]) == 3


def test_scatter_groups_keep_bool_and_number_apart():
    """True, 1 and "1" are different colour values."""
    t = _tbl(["x", "y", "flag"], (1, 1, True), (2, 2, 1), (3, 3, "1"), (4, 4, True))
    data = build_chart_data(t, ChartConfig("scatter", x_column="x", y_columns=["y"], color_column="flag"))

    assert [(d["label"], len(d["data"])) for d in data["datasets"]] == [("True", 2), ("1", 1), ("1", 1)]


def test_grouped_bar_keeps_bool_and_number_apart():
    t = _tbl(["year", "flag", "sales"], (2020, True, 10), (2020, 1, 20), (2021, 1, 30))
    data = build_chart_data(t, ChartConfig("bar", x_column="year", y_columns=["sales"], color_column="flag"))

    assert [d["label"] for d in data["datasets"]] == ["True", "1"]
    assert data["datasets"][0]["data"] == [10, 0]
    assert data["datasets"][1]["data"] == [20, 30]
