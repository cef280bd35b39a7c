"""API routes for individual data sources.

Uploading and listing happen under /api/v1/organizations/{id}/data-sources;
this module serves /api/v1/data-sources/{id} and its AI analysis.
"""

import json
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import (
    DataSourceAnalysisResponse,
    DataSourceDetailResponse,
    DataSourceResponse,
)
from src.db.connection import get_db
from src.db.models import DataSource
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.orchestrator.pipeline import GenerationPipeline
from src.services.data_source_service import DataSourceService, relation_from_source
from src.services.gateway_provider import get_generation_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data-sources", tags=["data-sources"])

SAMPLE_LIMIT = 20


def data_source_to_response(source: DataSource) -> DataSourceResponse:
    """Build the list/detail view of a data source without its records."""
    return DataSourceResponse(
        id=source.id,
        organization_id=source.organization_id,
        name=source.name,
        type=source.type,
        fields=json.loads(source.fields_json or "[]"),
        row_count=source.row_count,
        created_by_id=source.created_by_id,
        created_at=source.created_at,
    )


def _get_service(db: Session = Depends(get_db)) -> DataSourceService:
    """Dependency injector for DataSourceService."""
    return DataSourceService(db)


def _get_pipeline(
    db: Session = Depends(get_db),
    gateway: ChartGenerationGateway = Depends(get_generation_gateway),
) -> GenerationPipeline:
    """Dependency injector for GenerationPipeline."""
    return GenerationPipeline(db, gateway)


@router.get("/{data_source_id}", response_model=DataSourceDetailResponse)
def get_data_source(
    data_source_id: str,
    rows: int = SAMPLE_LIMIT,
    service: DataSourceService = Depends(_get_service),
) -> DataSourceDetailResponse:
    """Get a data source with up to ``rows`` sample records."""
    source = service.get_data_source(data_source_id)
    summary = data_source_to_response(source)
    sample = relation_from_source(source).sample(max(0, min(rows, 500)))
    return DataSourceDetailResponse(**summary.model_dump(), sample=sample)


@router.delete("/{data_source_id}", status_code=204)
def delete_data_source(
    data_source_id: str,
    service: DataSourceService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> None:
    """Delete a data source."""
    service.delete_data_source(data_source_id)
    db.commit()


@router.post("/{data_source_id}/analyze", response_model=DataSourceAnalysisResponse)
async def analyze_data_source(
    data_source_id: str,
    pipeline: GenerationPipeline = Depends(_get_pipeline),
) -> DataSourceAnalysisResponse:
    """Summarize a data source and suggest questions to chart. Nothing is saved."""
    analysis = await pipeline.analyze_data_source(data_source_id)
    return DataSourceAnalysisResponse(data_source_id=data_source_id, **analysis.model_dump())
