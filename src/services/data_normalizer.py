"""Tabular data normalizer.

Turns already-decoded upload content into a Relation: an ordered sequence
of flat records that all share one field list. Accepted inputs:

- CSV text, first row is the header
- JSON text holding an array of objects or a single object
- an already-parsed list of dicts, or a single dict
- an object wrapping its records, such as {"data": [...]}

Values are kept as they arrive. Numeric-looking strings are NOT coerced
here (zip codes, ids and account numbers must survive); numeric coercion
happens when a chart series is built.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass
from typing import Any

from src.errors.domain import UnsupportedFormatError

logger = logging.getLogger(__name__)

Scalar = str | int | float | bool | None

# Keys an uploaded object may wrap its record list under
_RECORD_WRAPPER_KEYS = ("data", "records", "rows", "items")


@dataclass(frozen=True)
class Relation:
    """Normalized tabular data. Immutable once built.

    Attributes:
        fields: Field names in first-seen order.
        records: Records, each carrying every field (missing values are None).
    """

    fields: tuple[str, ...]
    records: tuple[dict[str, Scalar], ...]

    @property
    def row_count(self) -> int:
        return len(self.records)

    def sample(self, limit: int) -> list[dict[str, Scalar]]:
        """Return copies of the first ``limit`` records."""
        return [dict(r) for r in self.records[:limit]]

    def to_records(self) -> list[dict[str, Scalar]]:
        """Return the records as a JSON-serializable list."""
        return [dict(r) for r in self.records]


def normalize(raw: str | list | dict, declared_format: str | None = None) -> Relation:
    """Normalize raw upload content into a Relation.

    Args:
        raw: CSV/JSON text, a list of record dicts, or one record dict.
            An object wrapping a record list under "data", "records",
            "rows" or "items" is unwrapped.
        declared_format: Optional "csv" or "json" from the upload's
            extension or MIME type. Text is sniffed when omitted.

    Returns:
        Relation with a consistent field set across all records.

    Raises:
        UnsupportedFormatError: If the input is neither CSV text nor
            JSON records.
    """
    if isinstance(raw, str):
        return _normalize_text(raw, declared_format)
    if isinstance(raw, (dict, list)):
        return _from_parsed(raw)
    raise UnsupportedFormatError(
        f"Expected CSV text or JSON records, got {type(raw).__name__}"
    )


def _normalize_text(text: str, declared_format: str | None) -> Relation:
    fmt = (declared_format or "").lower().lstrip(".")
    stripped = text.lstrip("\ufeff").strip()
    if not stripped:
        raise UnsupportedFormatError("Data source is empty")

    if fmt == "json" or (not fmt and stripped[0] in "[{"):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise UnsupportedFormatError(f"Invalid JSON: {e.msg}") from e
        return _from_parsed(parsed)

    if not fmt:
        # Bare JSON scalars ("42", '"abc"', "true") are JSON, not one-cell CSV
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            pass
        else:
            return _from_parsed(parsed)

    if fmt not in ("", "csv", "txt", "text"):
        raise UnsupportedFormatError(f"Unsupported format '{declared_format}'")
    return _from_csv(stripped)


def _from_parsed(parsed: Any) -> Relation:
    if isinstance(parsed, dict):
        for key in _RECORD_WRAPPER_KEYS:
            wrapped = parsed.get(key)
            if (
                isinstance(wrapped, list)
                and wrapped
                and all(isinstance(item, dict) for item in wrapped)
            ):
                return _from_records(wrapped)
        return _from_records([parsed])
    if isinstance(parsed, list):
        return _from_records(parsed)
    raise UnsupportedFormatError(
        f"JSON must be an array of objects or an object, got {type(parsed).__name__}"
    )


def _from_csv(text: str) -> Relation:
    try:
        rows = [row for row in csv.reader(io.StringIO(text)) if any(c.strip() for c in row)]
    except csv.Error as e:
        raise UnsupportedFormatError(f"Invalid CSV: {e}") from e
    if not rows:
        raise UnsupportedFormatError("CSV has no header row")

    fields = _dedupe_headers(rows[0])
    records = []
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) > len(fields):
            logger.debug(
                "CSV line %d has %d cells for %d columns, extra cells ignored",
                line_no, len(row), len(fields),
            )
        record: dict[str, Scalar] = {}
        for i, name in enumerate(fields):
            cell = row[i].strip() if i < len(row) else ""
            record[name] = cell if cell else None
        records.append(record)
    return Relation(fields=tuple(fields), records=tuple(records))


def _dedupe_headers(header: list[str]) -> list[str]:
    names: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(header):
        name = cell.strip().lstrip("\ufeff") or f"column_{i + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        names.append(name)
    return names


def _from_records(items: list[Any]) -> Relation:
    fields: list[str] = []
    known: set[str] = set()
    flat: list[dict[str, Scalar]] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise UnsupportedFormatError(
                f"Record {index} is {type(item).__name__}, expected an object"
            )
        record = {str(k): _to_scalar(v) for k, v in item.items()}
        for key in record:
            if key not in known:
                known.add(key)
                fields.append(key)
        flat.append(record)

    records = tuple({name: r.get(name) for name in fields} for r in flat)
    return Relation(fields=tuple(fields), records=records)


def _to_scalar(value: Any) -> Scalar:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    # Nested structures are kept as their JSON text
    return json.dumps(value, default=str)
