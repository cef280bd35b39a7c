"""Chart and generation models for the chart generation pipeline.

ChartPayload is the one canonical, renderer-agnostic chart shape used
everywhere after reconciliation. Its ``series`` is an ordered list of
``{label, value}`` points; that field naming is the wire contract shared by
chart rendering and the AI round-trip.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_COLOR_PALETTE: list[str] = [
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#06b6d4",
    "#84cc16",
    "#f97316",
]


class ChartType(str, Enum):
    """Chart types the renderer supports."""

    bar = "bar"
    line = "line"
    pie = "pie"
    doughnut = "doughnut"
    area = "area"
    scatter = "scatter"


class InsightCategory(str, Enum):
    """Analytical angle of a smart insight."""

    trend = "trend"
    comparison = "comparison"
    distribution = "distribution"
    correlation = "correlation"
    performance = "performance"
    anomaly = "anomaly"


class GenerationMode(str, Enum):
    """What a prompt package asks the generation backend for."""

    chart = "chart"
    insights = "insights"
    agent = "agent"
    synthetic_data = "synthetic_data"
    analysis = "analysis"


class SeriesPoint(BaseModel):
    """One category/x-axis entry of a chart series."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: int | float


class ChartPayload(BaseModel):
    """Canonical chart representation.

    Attributes:
        chart_type: Renderer chart type.
        series: Ordered points; order is the category/x-axis order.
        title: Chart title.
        color_palette: Ordered color tokens.
        insights: Natural-language bullets about the series.
    """

    chart_type: ChartType = ChartType.bar
    series: list[SeriesPoint] = Field(default_factory=list)
    title: str = ""
    color_palette: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COLOR_PALETTE)
    )
    insights: list[str] = Field(default_factory=list)

    def summary(self, max_points: int = 12) -> str:
        """Compact one-line description used as conversational memory.

        Args:
            max_points: Points listed before the rest are elided.

        Returns:
            e.g. ``bar chart "Sales": Q1=100, Q2=200``.
        """
        points = ", ".join(
            f"{p.label}={p.value}" for p in self.series[:max_points]
        )
        if len(self.series) > max_points:
            points += f", ... ({len(self.series)} points)"
        title = f' "{self.title}"' if self.title else ""
        return f"{self.chart_type.value} chart{title}: {points or 'no data'}"


class ChartCandidate(BaseModel):
    """One chart item from a generation response, shape-validated only.

    The ``chart_payload`` is still in whatever wire shape the backend used;
    it becomes a ChartPayload only through the reconciler.
    """

    title: str
    description: str = ""
    chart_type: str
    category: str | None = None
    chart_payload: Any


class AgentReply(BaseModel):
    """Validated Epesi Agent response: prose plus zero or more charts."""

    response: str
    charts: list[ChartCandidate] = Field(default_factory=list)


class DataSourceAnalysis(BaseModel):
    """Validated overview of one data source: a summary plus follow-ups."""

    summary: str
    key_findings: list[str] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)


class PriorTurn(BaseModel):
    """A previous question and the chart it produced."""

    question: str
    chart: ChartPayload | None = None
    answer: str | None = None


class PromptPackage(BaseModel):
    """Fully assembled instruction for one generation call.

    Built by the context builder and consumed by the gateway. Identical
    inputs always produce an identical package.
    """

    model_config = ConfigDict(frozen=True)

    mode: GenerationMode
    system_prompt: str
    instruction: str
    expected_count: int = 1


class GeneratedChart(BaseModel):
    """A reconciled chart with the question it answers."""

    question: str
    description: str = ""
    category: InsightCategory | None = None
    chart: ChartPayload
