"""FastAPI routes for Epesi Agent conversations.

Conversations are created by the agent chat endpoint (or explicitly under
/api/v1/dashboards/{id}/conversations). Messages are append-only and
written by the backend only.

Endpoints:
    GET    /conversations/{id}           - Conversation metadata
    GET    /conversations/{id}/messages  - Messages in order
    DELETE /conversations/{id}           - Delete with its messages
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import ConversationResponse, MessageResponse
from src.db.connection import get_db
from src.services.conversation_service import ConversationService, message_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _get_service(db: Session = Depends(get_db)) -> ConversationService:
    """Dependency injector for ConversationService."""
    return ConversationService(db)


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(_get_service),
) -> ConversationResponse:
    """Get conversation metadata."""
    return ConversationResponse.model_validate(service.get_conversation(conversation_id))


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
def get_messages(
    conversation_id: str,
    service: ConversationService = Depends(_get_service),
) -> list[MessageResponse]:
    """List a conversation's messages in order, charts included."""
    return [MessageResponse(**message_to_dict(m)) for m in service.get_messages(conversation_id)]


@router.delete("/{conversation_id}", status_code=204)
def delete_conversation(
    conversation_id: str,
    service: ConversationService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> None:
    """Delete a conversation and its messages."""
    service.delete_conversation(conversation_id)
    db.commit()
