"""Chart data reconciler.

Converts every chart payload shape the application meets into the one
canonical ChartPayload. Shapes are detected by their structure, in
priority order:

    (a) canonical list     [{"label"|"name": ..., "value": ...}, ...]
    (b) labels/datasets    {"labels": [...], "datasets": [{"data": [...]}]}
    (b') labels/values     {"labels": [...], "values": [...]}
    (c) categories/series  {"xAxis": {"categories": [...]}, "series": [{"data": [...]}]}
    (d) flat numbers       [1, 2, 3]  -> labels "Item 1".."Item N"
    (e) plain records      [{"month": "Jan", "sales": 10}, ...]

A list counts as canonical when any item carries "value"; items without a
label become "Item N". Plain records take their labels from the first
text field and their values from the first numeric field.

The series may sit at the top level or inside a wrapper that also carries
metadata ({"type"|"chart_type", "title", "insights", "colors", "data"}).
An unrecognized shape reconciles to an empty series; an empty chart is a
valid terminal state, so this module never raises on bad input.

Non-numeric values become 0 here and only here, and the entry is kept so
the series length (and the chart's categories) are unchanged.
"""

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from src.orchestrator.models.chart import (
    ChartCandidate,
    ChartPayload,
    ChartType,
    SeriesPoint,
)

logger = logging.getLogger(__name__)

# Chart type names used by other charting libraries and by the backend
CHART_TYPE_ALIASES: dict[str, ChartType] = {
    "bar": ChartType.bar,
    "column": ChartType.bar,
    "horizontalbar": ChartType.bar,
    "line": ChartType.line,
    "spline": ChartType.line,
    "pie": ChartType.pie,
    "doughnut": ChartType.doughnut,
    "donut": ChartType.doughnut,
    "area": ChartType.area,
    "areaspline": ChartType.area,
    "scatter": ChartType.scatter,
    "bubble": ChartType.scatter,
}

_CHART_TYPE_KEYS = ("chart_type", "chartType", "type")
_SERIES_WRAPPER_KEYS = ("series", "data", "chart_data", "chartData", "chart_payload")

# Currency symbols, percent signs and spacing around a number
_NUMBER_DECORATIONS = re.compile(r"[\s$€£¥₹%]")

_TYPE_SWITCH_PATTERN = re.compile(
    r"^\s*(?:(?:now|please|can\s+you|could\s+you)\s+)*"
    r"(?:convert|change|switch|turn|make|show|display|render|redo)\s+"
    r"(?:(?:it|this|that|the\s+chart|the\s+graph)\s+)?"
    r"(?:(?:in\s*to|to|as)\s+)?(?:an?\s+)?"
    r"(?P<type>[a-z]+)(?:\s+(?:chart|graph))?\s*(?:please)?\s*[.!?]*\s*$",
    re.IGNORECASE,
)


def normalize_chart_type(value: Any) -> ChartType | None:
    """Map a chart type name (including foreign aliases) to a ChartType.

    Args:
        value: A ChartType, or a name such as "column" or "Doughnut".

    Returns:
        The ChartType, or None when the name is not recognized.
    """
    if isinstance(value, ChartType):
        return value
    if not isinstance(value, str):
        return None
    key = re.sub(r"[\s_-]", "", value).lower()
    return CHART_TYPE_ALIASES.get(key)


def parse_type_switch(prompt: str) -> ChartType | None:
    """Detect a follow-up that only asks for a different chart type.

    Example:
        >>> parse_type_switch("convert this to a pie chart")
        <ChartType.pie: 'pie'>
        >>> parse_type_switch("show me revenue by month") is None
        True
    """
    match = _TYPE_SWITCH_PATTERN.match(prompt or "")
    if not match:
        return None
    return normalize_chart_type(match.group("type"))


def coerce_value(value: Any) -> int | float:
    """Coerce one raw series value to a number; anything else becomes 0.

    Numeric strings ("1,200", " 3.5 ", "$1,200", "45%") are parsed; a
    percentage keeps its number, so "45%" is 45. Booleans, None, NaN,
    infinities and non-numeric text all become 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        text = _NUMBER_DECORATIONS.sub("", value).replace(",", "")
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() and "." not in text else number
    if isinstance(value, Mapping):
        # Point objects such as {"y": 3} or {"value": 3}
        for key in ("y", "value"):
            if key in value:
                return coerce_value(value[key])
        return 0
    if isinstance(value, (list, tuple)) and len(value) == 2:
        # [x, y] pairs
        return coerce_value(value[1])
    return 0


def reconcile(raw_payload: Any, target_type: Any = None) -> ChartPayload:
    """Normalize any accepted chart payload shape into a ChartPayload.

    Args:
        raw_payload: ChartPayload, dict or list in any accepted shape.
        target_type: Optional chart type to switch to. The series is reused
            verbatim; only ``chart_type`` changes.

    Returns:
        Canonical ChartPayload. Unrecognized input yields an empty series.
    """
    if isinstance(raw_payload, ChartPayload):
        payload = raw_payload
    else:
        payload = _reconcile_raw(raw_payload)

    if target_type is not None:
        new_type = normalize_chart_type(target_type)
        if new_type is None:
            logger.warning("Ignoring unknown target chart type %r", target_type)
        elif new_type != payload.chart_type:
            payload = payload.model_copy(update={"chart_type": new_type})
    return payload


def reconcile_candidate(candidate: ChartCandidate, target_type: Any = None) -> ChartPayload:
    """Reconcile a gateway candidate, taking title and type from its metadata.

    Args:
        candidate: Shape-validated chart item from the gateway.
        target_type: Optional type override, e.g. from a type-switch request.

    Returns:
        Canonical ChartPayload titled with the candidate's question/title.
    """
    payload = reconcile(candidate.chart_payload)
    updates: dict[str, Any] = {}
    if not payload.title:
        updates["title"] = candidate.title
    candidate_type = normalize_chart_type(candidate.chart_type)
    if candidate_type is not None:
        updates["chart_type"] = candidate_type
    if updates:
        payload = payload.model_copy(update=updates)
    return reconcile(payload, target_type=target_type)


def _reconcile_raw(raw: Any) -> ChartPayload:
    meta: dict[str, Any] = {}
    series = _find_series(raw, meta)
    if series is None:
        logger.info(
            "Unrecognized chart payload shape (%s), using empty series",
            type(raw).__name__,
        )
        series = []

    fields: dict[str, Any] = {"series": series}
    chart_type = meta.get("chart_type")
    if chart_type is not None:
        fields["chart_type"] = chart_type
    if meta.get("title"):
        fields["title"] = meta["title"]
    if meta.get("color_palette"):
        fields["color_palette"] = meta["color_palette"]
    if meta.get("insights"):
        fields["insights"] = meta["insights"]
    return ChartPayload(**fields)


def _find_series(raw: Any, meta: dict[str, Any], depth: int = 0) -> list[SeriesPoint] | None:
    if depth > 3:
        return None

    if isinstance(raw, list):
        # (a) canonical list of label/value points
        if raw and all(isinstance(item, Mapping) for item in raw) and any(
            "value" in item for item in raw
        ):
            return [_point_from_mapping(item, i) for i, item in enumerate(raw)]
        # (e) plain records
        if raw and all(isinstance(item, Mapping) for item in raw):
            return _records_series(raw)
        # (d) flat array of numbers; stray non-numeric entries become 0
        if (
            raw
            and all(_is_scalar(item) for item in raw)
            and any(_is_number_like(item) for item in raw)
        ):
            return [
                SeriesPoint(label=f"Item {i + 1}", value=coerce_value(v))
                for i, v in enumerate(raw)
            ]
        if not raw:
            return []
        return None

    if not isinstance(raw, Mapping):
        return None

    _collect_meta(raw, meta)

    # (b) labels + datasets
    datasets = raw.get("datasets")
    if "labels" in raw and isinstance(datasets, list):
        first = datasets[0] if datasets else {}
        data = first.get("data", []) if isinstance(first, Mapping) else []
        return _zip_series(raw.get("labels"), data)

    # (b') labels + values
    if "labels" in raw and isinstance(raw.get("values"), list):
        return _zip_series(raw.get("labels"), raw["values"])

    # (c) xAxis categories + series
    categories = _categories(raw.get("xAxis"))
    series_list = raw.get("series")
    if categories is not None and isinstance(series_list, list):
        first = series_list[0] if series_list else {}
        data = first.get("data", []) if isinstance(first, Mapping) else []
        return _zip_series(categories, data)

    # Wrappers: {"data": [...]}, {"series": [...]}, {"chart_data": {...}}
    for key in _SERIES_WRAPPER_KEYS:
        if key in raw:
            found = _find_series(raw[key], meta, depth + 1)
            if found is not None:
                return found
    return None


def _collect_meta(raw: Mapping, meta: dict[str, Any]) -> None:
    if "chart_type" not in meta:
        for key in _CHART_TYPE_KEYS:
            chart_type = normalize_chart_type(raw.get(key))
            if chart_type is not None:
                meta["chart_type"] = chart_type
                break
        else:
            chart = raw.get("chart")
            if isinstance(chart, Mapping):
                chart_type = normalize_chart_type(chart.get("type"))
                if chart_type is not None:
                    meta["chart_type"] = chart_type

    if "title" not in meta:
        title = raw.get("title")
        if isinstance(title, Mapping):
            title = title.get("text")
        if isinstance(title, str) and title.strip():
            meta["title"] = title.strip()

    if "color_palette" not in meta:
        colors = raw.get("color_palette", raw.get("colors"))
        if isinstance(colors, list) and colors and all(isinstance(c, str) for c in colors):
            meta["color_palette"] = list(colors)

    if "insights" not in meta:
        insights = raw.get("insights")
        if isinstance(insights, list):
            texts = [i for i in insights if isinstance(i, str) and i.strip()]
            if texts:
                meta["insights"] = texts


def _categories(x_axis: Any) -> list | None:
    if isinstance(x_axis, list) and x_axis:
        x_axis = x_axis[0]
    if isinstance(x_axis, Mapping) and isinstance(x_axis.get("categories"), list):
        return x_axis["categories"]
    return None


def _zip_series(labels: Any, data: Any) -> list[SeriesPoint]:
    labels = labels if isinstance(labels, list) else []
    data = data if isinstance(data, list) else []
    length = max(len(labels), len(data))
    points = []
    for i in range(length):
        label = labels[i] if i < len(labels) else None
        value = data[i] if i < len(data) else None
        points.append(SeriesPoint(label=_label(label, i), value=coerce_value(value)))
    return points


def _records_series(records: list[Mapping]) -> list[SeriesPoint] | None:
    keys: list[str] = []
    for record in records:
        for key in record:
            if key not in keys:
                keys.append(key)

    def numeric(key: str) -> bool:
        return any(_is_number_like(record.get(key)) for record in records)

    def all_numeric(key: str) -> bool:
        return all(_is_number_like(record.get(key)) for record in records)

    label_key = next((k for k in keys if not all_numeric(k)), keys[0] if keys else None)
    value_key = next((k for k in keys if k != label_key and numeric(k)), None)
    if label_key is None or value_key is None:
        return None
    return [
        SeriesPoint(label=_label(record.get(label_key), i), value=coerce_value(record.get(value_key)))
        for i, record in enumerate(records)
    ]


def _is_scalar(item: Any) -> bool:
    return item is None or isinstance(item, (str, int, float, bool))


def _is_number_like(item: Any) -> bool:
    if isinstance(item, bool):
        return False
    if isinstance(item, (int, float)):
        return True
    return isinstance(item, str) and coerce_value(item) != 0


def _point_from_mapping(item: Mapping, index: int) -> SeriesPoint:
    label = item.get("label", item.get("name"))
    return SeriesPoint(label=_label(label, index), value=coerce_value(item.get("value")))


def _label(label: Any, index: int) -> str:
    if label is None or (isinstance(label, str) and not label.strip()):
        return f"Item {index + 1}"
    return str(label)
