"""API routes for individual blocks and their chat history.

All endpoints use the /api/v1/blocks prefix.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import (
    BlockResponse,
    BlockUpdate,
    ChatHistoryCreate,
    ChatHistoryResponse,
)
from src.db.connection import get_db
from src.orchestrator.nl_engine.reconciler import reconcile
from src.services.block_service import BlockService, block_to_dict
from src.services.conversation_service import ConversationService, chat_turn_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blocks", tags=["blocks"])


def _get_service(db: Session = Depends(get_db)) -> BlockService:
    """Dependency injector for BlockService."""
    return BlockService(db)


@router.get("/{block_id}", response_model=BlockResponse)
def get_block(
    block_id: str,
    service: BlockService = Depends(_get_service),
) -> BlockResponse:
    """Get a block by ID."""
    return BlockResponse(**block_to_dict(service.get_block(block_id)))


@router.patch("/{block_id}", response_model=BlockResponse)
def update_block(
    block_id: str,
    data: BlockUpdate,
    service: BlockService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> BlockResponse:
    """Partially update a block.

    A ``position`` change moves the block, shifting only the blocks
    between its old and new slot.
    """
    fields = data.model_dump(exclude_unset=True)
    if "type" in fields:
        fields["block_type"] = fields.pop("type")
    block = service.update_block(block_id, **fields)
    db.commit()
    return BlockResponse(**block_to_dict(block))


@router.delete("/{block_id}", status_code=204)
def delete_block(
    block_id: str,
    service: BlockService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> None:
    """Delete a block and close the gap in the dashboard order."""
    service.delete_block(block_id)
    db.commit()


@router.get("/{block_id}/chat-history", response_model=list[ChatHistoryResponse])
def get_chat_history(
    block_id: str,
    db: Session = Depends(get_db),
) -> list[ChatHistoryResponse]:
    """List a block's prompt-to-chart history, most recent first."""
    turns = ConversationService(db).get_chat_history(block_id)
    return [ChatHistoryResponse(**chat_turn_to_dict(t)) for t in turns]


@router.post(
    "/{block_id}/chat-history",
    response_model=ChatHistoryResponse,
    status_code=201,
)
def create_chat_history_entry(
    block_id: str,
    data: ChatHistoryCreate,
    db: Session = Depends(get_db),
) -> ChatHistoryResponse:
    """Record a chat history entry. The chart is reconciled before storage."""
    turn = ConversationService(db).record_chat_turn(
        block_id, data.question, reconcile(data.chart_data)
    )
    db.commit()
    return ChatHistoryResponse(**chat_turn_to_dict(turn))


@router.delete("/chat-history/{turn_id}", status_code=204)
def delete_chat_history_entry(
    turn_id: str,
    db: Session = Depends(get_db),
) -> None:
    """Delete a chat history entry."""
    ConversationService(db).delete_chat_turn(turn_id)
    db.commit()
