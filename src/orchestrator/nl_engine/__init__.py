"""Natural language engine for chart generation.

This module provides prompt/context building, the generation gateway
with its output contract, chart payload reconciliation and rule-based
insight synthesis.
"""

from src.orchestrator.nl_engine.context_builder import (
    PRIOR_TURN_LIMIT,
    SAMPLE_ROW_LIMIT,
    RelationContext,
    build_context,
)
from src.orchestrator.nl_engine.gateway import (
    AnthropicBackend,
    ChartGenerationGateway,
    GenerationBackend,
    strip_code_fences,
)
from src.orchestrator.nl_engine.insights import looks_like_time_series, synthesize
from src.orchestrator.nl_engine.reconciler import (
    coerce_value,
    normalize_chart_type,
    parse_type_switch,
    reconcile,
    reconcile_candidate,
)

__all__ = [
    # Context building
    "build_context",
    "RelationContext",
    "SAMPLE_ROW_LIMIT",
    "PRIOR_TURN_LIMIT",
    # Gateway
    "ChartGenerationGateway",
    "GenerationBackend",
    "AnthropicBackend",
    "strip_code_fences",
    # Reconciliation
    "reconcile",
    "reconcile_candidate",
    "coerce_value",
    "normalize_chart_type",
    "parse_type_switch",
    # Insights
    "synthesize",
    "looks_like_time_series",
]
