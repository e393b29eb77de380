from tablefuse.charts import ChartConfig, build_chart_data, build_chart_options, default_chart_config
from tablefuse.errors import TableFuseUserError
from tablefuse.inference import classify_columns
from tablefuse.join import join_tables
from tablefuse.keys import JoinColumn, detect_join_keys, find_best_join_keys
from tablefuse.models.pipeline import Pipeline
from tablefuse.models.sinks import Sink
from tablefuse.models.sources import Source
from tablefuse.models.steps import Join
from tablefuse.models.table import Table
from tablefuse.util import coerce_number, normalize_value

__all__ = [
    "ChartConfig",
    "Join",
    "JoinColumn",
    "Pipeline",
    "Sink",
    "Source",
    "Table",
    "TableFuseUserError",
    "build_chart_data",
    "build_chart_options",
    "classify_columns",
    "coerce_number",
    "default_chart_config",
    "detect_join_keys",
    "find_best_join_keys",
    "join_tables",
    "normalize_value",
]
