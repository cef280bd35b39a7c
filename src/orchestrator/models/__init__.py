"""Pydantic models for the chart generation pipeline."""

from src.orchestrator.models.chart import (
    DEFAULT_COLOR_PALETTE,
    AgentReply,
    ChartCandidate,
    ChartPayload,
    ChartType,
    GeneratedChart,
    GenerationMode,
    InsightCategory,
    PriorTurn,
    PromptPackage,
    SeriesPoint,
)

__all__ = [
    "DEFAULT_COLOR_PALETTE",
    "AgentReply",
    "ChartCandidate",
    "ChartPayload",
    "ChartType",
    "GeneratedChart",
    "GenerationMode",
    "InsightCategory",
    "PriorTurn",
    "PromptPackage",
    "SeriesPoint",
]
