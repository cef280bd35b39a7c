"""Scripted generation backend for tests.

Each call to ``complete`` consumes the next scripted item:

- a ``str`` is returned as the raw response text
- a ``dict`` or ``list`` is returned JSON-encoded
- an exception instance is raised
- a ``Hang`` sleeps longer than any test timeout
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any


@dataclass
class Hang:
    """Scripted response that never arrives in time."""

    seconds: float = 10.0


class FakeBackend:
    """In-memory GenerationBackend with a queue of scripted responses."""

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses: list[Any] = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def script(self, *responses: Any) -> "FakeBackend":
        self.responses.extend(responses)
        return self

    async def complete(
        self,
        system: str,
        instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append(
            {
                "system": system,
                "instruction": instruction,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.responses:
            raise AssertionError("FakeBackend called with no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Hang):
            await asyncio.sleep(item.seconds)
            return ""
        if isinstance(item, (dict, list)):
            return json.dumps(item)
        return item


def chart_response(
    title: str = "Revenue by Region",
    points: list[tuple[str, float]] | None = None,
    chart_type: str = "bar",
    description: str = "Revenue per region.",
) -> dict[str, Any]:
    """Build a well-formed single-chart response object."""
    points = points if points is not None else [("North", 1200), ("South", 800)]
    return {
        "title": title,
        "description": description,
        "chart_type": chart_type,
        "chart_payload": [{"label": label, "value": value} for label, value in points],
    }
