"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag) for normalized data files.
"""

import json

from rich.console import Console
from rich.table import Table

from src.services.data_normalizer import Relation

console = Console()

# Longest cell shown before truncation in table output
MAX_CELL_WIDTH = 40


def _cell(value: object) -> str:
    if value is None:
        return "-"
    text = str(value)
    if len(text) > MAX_CELL_WIDTH:
        return text[: MAX_CELL_WIDTH - 1] + "…"
    return text


def format_relation_table(
    relation: Relation,
    title: str = "Data",
    rows: int = 10,
    as_json: bool = False,
) -> str:
    """Format a normalized relation as a Rich table or JSON.

    Args:
        relation: The normalized data to display.
        title: Table title, usually the file name.
        rows: Maximum number of sample rows to include.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    sample = relation.sample(rows)
    if as_json:
        return json.dumps(
            {
                "fields": list(relation.fields),
                "row_count": relation.row_count,
                "sample": sample,
            },
            indent=2,
            default=str,
        )

    if not relation.fields:
        return "No fields found."

    table = Table(title=f"{title} ({relation.row_count} records)", show_lines=False)
    for field in relation.fields:
        table.add_column(field)
    for record in sample:
        table.add_row(*(_cell(record.get(f)) for f in relation.fields))

    with console.capture() as capture:
        console.print(table)
    return capture.get()
