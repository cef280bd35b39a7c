"""Rule-based insight synthesis for finalized chart series.

Derives one to three plain-language sentences from a reconciled series
without a second backend call: the leading entry, the trailing entry or
overall trend, and the largest step change when the labels read as a
time series. Synthesis must never block chart creation, so failures are
logged and produce an empty list.
"""

import logging
import re

from src.orchestrator.models.chart import SeriesPoint

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 3

_MONTHS = (
    "jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec|"
    "january|february|march|april|june|july|august|september|october|november|december"
)
_DAYS = "mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun|monday|tuesday|wednesday|thursday|friday|saturday|sunday"

_TIME_LABEL = re.compile(
    r"^(?:"
    rf"(?:{_MONTHS})\.?(?:\s+'?\d{{2,4}})?"  # Jan, March 2024, Sep '23
    rf"|(?:{_DAYS})"  # Mon, Tuesday
    r"|q[1-4](?:\s*[-/ ]?\s*'?\d{2,4})?"  # Q1, Q3 2024
    r"|(?:19|20)\d{2}(?:\s*[-/ ]?\s*q[1-4])?"  # 2023, 2023 Q2
    r"|(?:19|20)\d{2}-\d{1,2}(?:-\d{1,2})?"  # 2024-03, 2024-03-01
    r"|\d{1,2}/\d{1,2}(?:/\d{2,4})?"  # 03/01, 3/1/2024
    r"|(?:week|wk|w|day|month|period|h|fy)\s*-?\s*\d{1,4}"  # Week 3, H1, FY24
    r")$",
    re.IGNORECASE,
)


def looks_like_time_series(labels: list[str]) -> bool:
    """Return True when every label reads as a date or period."""
    return len(labels) >= 2 and all(_TIME_LABEL.match(label.strip()) for label in labels)


def synthesize(series: list[SeriesPoint], question: str) -> list[str]:
    """Derive short natural-language insights from a chart series.

    Args:
        series: Canonical series in display order.
        question: The prompt or insight question the chart answers.

    Returns:
        Between one and three sentences, or an empty list when the series
        is empty or the insights cannot be derived.
    """
    try:
        return _synthesize(series, question)
    except (ArithmeticError, ValueError, TypeError) as e:
        logger.warning("Insight synthesis failed for %r: %s", question, e)
        return []


def _synthesize(series: list[SeriesPoint], question: str) -> list[str]:
    if not series:
        return []

    subject = _subject(question)
    if len(series) == 1:
        only = series[0]
        return [f"{subject} {only.label} is {_fmt(only.value)}."]

    values = [p.value for p in series]
    top = max(series, key=lambda p: p.value)
    bottom = min(series, key=lambda p: p.value)
    total = sum(values)
    insights: list[str] = []

    if top.value == bottom.value:
        return [f"{subject} all {len(series)} entries are equal at {_fmt(top.value)}."]

    lead = f"{subject} {top.label} is highest at {_fmt(top.value)}"
    if total > 0 and bottom.value >= 0:
        lead += f" ({top.value / total:.1%} of the total)"
    insights.append(lead + ".")

    if looks_like_time_series([p.label for p in series]):
        first, last = series[0], series[-1]
        insights.append(_trend_sentence(first, last))
        step = _largest_step(series)
        if step is not None:
            insights.append(step)
    else:
        gap = top.value - bottom.value
        insights.append(
            f"{bottom.label} is lowest at {_fmt(bottom.value)}, "
            f"{_fmt(gap)} below {top.label}."
        )

    return insights[:MAX_INSIGHTS]


def _subject(question: str) -> str:
    text = (question or "").strip().rstrip("?.!")
    if not text:
        return "Across the chart,"
    if len(text) > 60:
        text = text[:57].rstrip() + "..."
    return f'For "{text}",'


def _trend_sentence(first: SeriesPoint, last: SeriesPoint) -> str:
    change = last.value - first.value
    if change == 0:
        return f"The value is unchanged from {first.label} to {last.label}."
    direction = "rose" if change > 0 else "fell"
    if first.value != 0:
        pct = abs(change) / abs(first.value)
        return (
            f"From {first.label} to {last.label} the value {direction} "
            f"{pct:.1%}, from {_fmt(first.value)} to {_fmt(last.value)}."
        )
    return (
        f"From {first.label} to {last.label} the value {direction} "
        f"by {_fmt(abs(change))}."
    )


def _largest_step(series: list[SeriesPoint]) -> str | None:
    steps = [
        (series[i].value - series[i - 1].value, series[i - 1], series[i])
        for i in range(1, len(series))
    ]
    if len(steps) < 2:
        return None
    delta, before, after = max(steps, key=lambda s: abs(s[0]))
    if delta == 0:
        return None
    word = "increase" if delta > 0 else "drop"
    return (
        f"The largest single-period {word} was {_fmt(abs(delta))}, "
        f"between {before.label} and {after.label}."
    )


def _fmt(value: int | float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"
