"""API route for the Epesi Agent chat.

POST /api/v1/epesi-agent/chat answers a prompt about the dashboard's data
with prose and up to four charts, and records the exchange in a
conversation.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.middleware.auth import get_current_user_id
from src.api.schemas import AgentChatRequest, AgentChatResponse
from src.db.connection import get_db
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.orchestrator.pipeline import GenerationPipeline
from src.services.gateway_provider import get_generation_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/epesi-agent", tags=["epesi-agent"])


@router.post("/chat", response_model=AgentChatResponse)
async def chat(
    data: AgentChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: ChartGenerationGateway = Depends(get_generation_gateway),
) -> AgentChatResponse:
    """Answer an Epesi Agent prompt.

    Omitting ``conversation_id`` starts a new conversation titled from the
    prompt. Returns 404 for an unknown conversation.
    """
    result = await GenerationPipeline(db, gateway).agent_chat(
        data.dashboard_id,
        data.prompt,
        user_id=user_id,
        conversation_id=data.conversation_id,
    )
    return AgentChatResponse(
        conversation_id=result.conversation_id,
        response=result.response,
        charts=result.charts,
    )
