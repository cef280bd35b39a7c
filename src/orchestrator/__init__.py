"""Chart generation orchestration for Epesi dashboards.

Main Entry Points:
    src.orchestrator.pipeline.GenerationPipeline: Runs a prompt through
        context building, generation, reconciliation, insight synthesis
        and persistence.
    src.orchestrator.nl_engine.ChartGenerationGateway: Validated access to
        the generation backend.

Supporting Models:
    ChartPayload: Canonical chart representation.
    PromptPackage: Assembled instruction for one generation call.
"""

from src.orchestrator.models.chart import (
    ChartPayload,
    ChartType,
    GenerationMode,
    PromptPackage,
    SeriesPoint,
)

__all__ = [
    "ChartPayload",
    "ChartType",
    "GenerationMode",
    "PromptPackage",
    "SeriesPoint",
]
