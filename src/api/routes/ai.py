"""API routes for AI generation: block charts, smart insights, synthetic data.

All endpoints use the /api/v1/ai prefix and are async because they wait
on the generation backend. Backend failures return 502 with a retryable
error code; nothing is persisted for a failed turn.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.middleware.auth import get_current_user_id
from src.api.schemas import (
    BlockResponse,
    GenerateChartRequest,
    GenerateChartResponse,
    GenerateInsightsRequest,
    GenerateInsightsResponse,
    GenerateSyntheticDataRequest,
    GenerateSyntheticDataResponse,
    InsightResponse,
)
from src.db.connection import get_db
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.orchestrator.pipeline import GenerationPipeline
from src.services.block_service import block_to_dict
from src.services.gateway_provider import get_generation_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _get_pipeline(
    db: Session = Depends(get_db),
    gateway: ChartGenerationGateway = Depends(get_generation_gateway),
) -> GenerationPipeline:
    """Dependency injector for GenerationPipeline."""
    return GenerationPipeline(db, gateway)


@router.post("/generate-chart", response_model=GenerateChartResponse)
async def generate_chart(
    data: GenerateChartRequest,
    pipeline: GenerationPipeline = Depends(_get_pipeline),
    user_id: str = Depends(get_current_user_id),
) -> GenerateChartResponse:
    """Generate a chart for a block, or for a new AI block at the top.

    A follow-up such as "make it a pie chart" keeps the block's series and
    only changes the chart type.
    """
    result = await pipeline.generate_block_chart(
        data.prompt,
        user_id=user_id,
        block_id=data.block_id,
        dashboard_id=data.dashboard_id,
        chart_type=data.chart_type.value if data.chart_type else None,
    )
    return GenerateChartResponse(
        block=BlockResponse(**block_to_dict(result.block)),
        chart_data=result.chart,
        chat_history_id=result.chat_turn.id,
        reused_series=result.reused_series,
    )


@router.post("/generate-insights", response_model=GenerateInsightsResponse)
async def generate_insights(
    data: GenerateInsightsRequest,
    pipeline: GenerationPipeline = Depends(_get_pipeline),
) -> GenerateInsightsResponse:
    """Propose smart insights for a dashboard. Nothing is saved.

    ``generated`` may be lower than ``requested``.
    """
    batch = await pipeline.generate_insights(data.dashboard_id, data.count, prompt=data.prompt)
    return GenerateInsightsResponse(
        insights=[
            InsightResponse(
                question=item.question,
                description=item.description,
                chart_type=item.chart.chart_type,
                insight_category=item.category,
                chart_payload=item.chart,
                insights=item.chart.insights,
            )
            for item in batch.insights
        ],
        requested=batch.requested,
        generated=batch.generated,
    )


@router.post("/generate-synthetic-data", response_model=GenerateSyntheticDataResponse)
async def generate_synthetic_data(
    data: GenerateSyntheticDataRequest,
    pipeline: GenerationPipeline = Depends(_get_pipeline),
    user_id: str = Depends(get_current_user_id),
) -> GenerateSyntheticDataResponse:
    """Generate a realistic dataset, stored when an organization is given."""
    result = await pipeline.generate_synthetic_data(
        data.prompt,
        organization_id=data.organization_id,
        name=data.name,
        user_id=user_id,
    )
    return GenerateSyntheticDataResponse(
        data_source_id=result.data_source_id,
        fields=list(result.relation.fields),
        row_count=result.relation.row_count,
        records=result.relation.to_records(),
    )
