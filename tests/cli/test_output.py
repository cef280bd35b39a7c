"""Tests for CLI output formatting."""

import json

from src.cli.output import MAX_CELL_WIDTH, format_relation_table
from src.services.data_normalizer import Relation


def _relation() -> Relation:
    return Relation(
        fields=("name", "note"),
        records=(
            {"name": "Alpha", "note": None},
            {"name": "Beta", "note": "x" * (MAX_CELL_WIDTH + 10)},
        ),
    )


def test_table_shows_title_and_placeholders():
    output = format_relation_table(_relation(), title="people.csv")
    assert "people.csv (2 records)" in output
    assert "Alpha" in output
    assert " - " in output
    assert "x" * (MAX_CELL_WIDTH + 10) not in output


def test_json_output_limits_sample():
    parsed = json.loads(format_relation_table(_relation(), rows=1, as_json=True))
    assert parsed == {
        "fields": ["name", "note"],
        "row_count": 2,
        "sample": [{"name": "Alpha", "note": None}],
    }


def test_no_fields():
    assert format_relation_table(Relation(fields=(), records=())) == "No fields found."
