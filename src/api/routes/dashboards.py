"""API routes for dashboards, their blocks and their conversations.

All endpoints use the /api/v1/dashboards prefix. Block order changes go
through BlockService, which delegates every position write to the
position engine; each request commits once.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.middleware.auth import get_current_user_id
from src.api.schemas import (
    BlockCreate,
    BlockReorderRequest,
    BlockResponse,
    ConversationCreate,
    ConversationResponse,
    DashboardCreate,
    DashboardResponse,
    DashboardUpdate,
    SaveInsightBlocksRequest,
)
from src.db.connection import get_db
from src.services.block_position_service import BlockSource
from src.services.block_service import BlockService, block_to_dict
from src.services.conversation_service import ConversationService
from src.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def _get_service(db: Session = Depends(get_db)) -> DashboardService:
    """Dependency injector for DashboardService."""
    return DashboardService(db)


def _get_block_service(db: Session = Depends(get_db)) -> BlockService:
    """Dependency injector for BlockService."""
    return BlockService(db)


@router.post("", response_model=DashboardResponse, status_code=201)
def create_dashboard(
    data: DashboardCreate,
    service: DashboardService = Depends(_get_service),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Create an empty dashboard in a project."""
    dashboard = service.create_dashboard(
        data.project_id,
        data.name,
        description=data.description,
        is_public=data.is_public,
        user_id=user_id,
    )
    db.commit()
    return DashboardResponse.model_validate(dashboard)


@router.get("", response_model=list[DashboardResponse])
def list_dashboards(
    project_id: str,
    service: DashboardService = Depends(_get_service),
) -> list[DashboardResponse]:
    """List a project's dashboards, most recently updated first."""
    return [DashboardResponse.model_validate(d) for d in service.list_dashboards(project_id)]


@router.get("/{dashboard_id}", response_model=DashboardResponse)
def get_dashboard(
    dashboard_id: str,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Get a dashboard and record the access."""
    dashboard = service.get_dashboard(dashboard_id, touch=True)
    db.commit()
    return DashboardResponse.model_validate(dashboard)


@router.patch("/{dashboard_id}", response_model=DashboardResponse)
def update_dashboard(
    dashboard_id: str,
    data: DashboardUpdate,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Partially update a dashboard."""
    dashboard = service.update_dashboard(dashboard_id, **data.model_dump(exclude_unset=True))
    db.commit()
    return DashboardResponse.model_validate(dashboard)


@router.patch("/{dashboard_id}/access", response_model=DashboardResponse)
def record_dashboard_access(
    dashboard_id: str,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Record that the dashboard was opened, for recently-viewed lists."""
    dashboard = service.record_access(dashboard_id)
    db.commit()
    return DashboardResponse.model_validate(dashboard)


@router.delete("/{dashboard_id}", status_code=204)
def delete_dashboard(
    dashboard_id: str,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> None:
    """Delete a dashboard with its blocks and conversations."""
    service.delete_dashboard(dashboard_id)
    db.commit()


# Blocks


@router.get("/{dashboard_id}/blocks", response_model=list[BlockResponse])
def list_blocks(
    dashboard_id: str,
    blocks: BlockService = Depends(_get_block_service),
) -> list[BlockResponse]:
    """List a dashboard's blocks in display order."""
    return [BlockResponse(**block_to_dict(b)) for b in blocks.list_blocks(dashboard_id)]


@router.post("/{dashboard_id}/blocks", response_model=BlockResponse, status_code=201)
def create_block(
    dashboard_id: str,
    data: BlockCreate,
    blocks: BlockService = Depends(_get_block_service),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> BlockResponse:
    """Create a block.

    Without ``position`` user blocks are appended and agent blocks are
    placed at the top. Chart data in ``content`` is reconciled first.
    """
    block = blocks.create_block(
        dashboard_id,
        title=data.title,
        description=data.description,
        block_type=data.type,
        size=data.size,
        content=data.content,
        position=data.position,
        source=BlockSource(data.source.value),
        user_id=user_id,
    )
    db.commit()
    return BlockResponse(**block_to_dict(block))


@router.put("/{dashboard_id}/blocks/reorder", response_model=list[BlockResponse])
def reorder_blocks(
    dashboard_id: str,
    data: BlockReorderRequest,
    blocks: BlockService = Depends(_get_block_service),
    db: Session = Depends(get_db),
) -> list[BlockResponse]:
    """Reorder every block of a dashboard.

    Returns 409 when the ids do not match the dashboard's current blocks.
    """
    ordered = blocks.reorder_blocks(dashboard_id, data.block_ids)
    db.commit()
    return [BlockResponse(**block_to_dict(b)) for b in ordered]


@router.post(
    "/{dashboard_id}/insight-blocks",
    response_model=list[BlockResponse],
    status_code=201,
)
def save_insight_blocks(
    dashboard_id: str,
    data: SaveInsightBlocksRequest,
    blocks: BlockService = Depends(_get_block_service),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[BlockResponse]:
    """Save accepted smart insights as AI blocks in one transaction."""
    created = blocks.save_insight_blocks(
        dashboard_id,
        [item.model_dump() for item in data.insights],
        start_position=data.start_position,
        user_id=user_id,
    )
    db.commit()
    return [BlockResponse(**block_to_dict(b)) for b in created]


# Conversations


@router.get("/{dashboard_id}/conversations", response_model=list[ConversationResponse])
def list_conversations(
    dashboard_id: str,
    db: Session = Depends(get_db),
) -> list[ConversationResponse]:
    """List a dashboard's Epesi Agent conversations, most recent first."""
    return [
        ConversationResponse.model_validate(c)
        for c in ConversationService(db).list_conversations(dashboard_id)
    ]


@router.post(
    "/{dashboard_id}/conversations",
    response_model=ConversationResponse,
    status_code=201,
)
def create_conversation(
    dashboard_id: str,
    data: ConversationCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ConversationResponse:
    """Start an empty conversation on a dashboard."""
    conversation = ConversationService(db).create_conversation(
        dashboard_id, title=data.title, user_id=user_id
    )
    db.commit()
    return ConversationResponse.model_validate(conversation)
