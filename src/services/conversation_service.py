"""Persistence service for conversations and per-block chat history.

Two append-only stores share this coordinator:

- Epesi Agent conversations: a Conversation owns an ordered sequence of
  user/assistant messages. Appending a message bumps the conversation's
  ``updated_at``.
- Block chat history: each AI block keeps its prompt-to-chart exchanges.

Both are read back as PriorTurns, most recent first, to give follow-up
prompts their conversational memory.

Methods flush but do NOT call db.commit(); the caller commits, so a
generation turn can persist its messages in the same transaction as the
rest of its writes.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.db.connection import lock_row
from src.db.models import (
    Block,
    BlockChatTurn,
    Conversation,
    Dashboard,
    Message,
    MessageRole,
    utc_now_iso,
)
from src.errors.domain import (
    BlockNotFoundError,
    ChatTurnNotFoundError,
    ConversationNotFoundError,
    DashboardNotFoundError,
    ValidationError,
)
from src.orchestrator.models.chart import ChartPayload, PriorTurn

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
DEFAULT_CONVERSATION_TITLE = "New Conversation"
DEFAULT_CONTEXT_LIMIT = 6


def derive_conversation_title(first_prompt: str | None) -> str:
    """Derive a conversation title from its first prompt.

    Prompts longer than 50 characters are cut to 50 characters followed by
    "..."; shorter prompts are kept verbatim.

    Example:
        >>> derive_conversation_title("Show revenue by region")
        'Show revenue by region'
    """
    text = (first_prompt or "").strip()
    if not text:
        return DEFAULT_CONVERSATION_TITLE
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text


def _load_json(raw: str | None, what: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring unreadable %s JSON: %s", what, e)
        return None


def _chart_from_json(raw: Any) -> ChartPayload | None:
    if not isinstance(raw, dict):
        return None
    try:
        return ChartPayload.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning("Ignoring stored chart that no longer validates: %s", e)
        return None


def message_to_dict(message: Message) -> dict[str, Any]:
    """Serialize a message for API responses."""
    metadata = _load_json(message.metadata_json, "message metadata") or {}
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "role": message.role,
        "content": message.content,
        "charts": metadata.get("charts", []) if isinstance(metadata, dict) else [],
        "sequence": message.sequence,
        "created_at": message.created_at,
    }


def chat_turn_to_dict(turn: BlockChatTurn) -> dict[str, Any]:
    """Serialize a block chat history entry for API responses."""
    return {
        "id": turn.id,
        "block_id": turn.block_id,
        "question": turn.question,
        "chart_data": _load_json(turn.chart_data_json, "chat history chart") or {},
        "sequence": turn.sequence,
        "generated_at": turn.generated_at,
    }


class ConversationService:
    """Coordinator for conversation messages and block chat history."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # Conversations

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def list_conversations(self, dashboard_id: str) -> list[Conversation]:
        """List a dashboard's conversations, most recently active first."""
        if self.db.get(Dashboard, dashboard_id) is None:
            raise DashboardNotFoundError(dashboard_id)
        stmt = (
            select(Conversation)
            .where(Conversation.dashboard_id == dashboard_id)
            .order_by(Conversation.updated_at.desc())
        )
        return list(self.db.execute(stmt).scalars())

    def create_conversation(
        self,
        dashboard_id: str,
        title: str | None = None,
        user_id: str | None = None,
    ) -> Conversation:
        if self.db.get(Dashboard, dashboard_id) is None:
            raise DashboardNotFoundError(dashboard_id)
        conversation = Conversation(
            dashboard_id=dashboard_id,
            title=derive_conversation_title(title),
            created_by_id=user_id,
        )
        self.db.add(conversation)
        self.db.flush()
        logger.info(
            "Created conversation %s on dashboard %s (%r)",
            conversation.id, dashboard_id, conversation.title,
        )
        return conversation

    def get_or_create_conversation(
        self,
        dashboard_id: str,
        conversation_id: str | None = None,
        first_prompt: str | None = None,
        user_id: str | None = None,
    ) -> Conversation:
        """Fetch the given conversation, or start one titled from the prompt.

        Raises:
            ConversationNotFoundError: If ``conversation_id`` does not exist
                or belongs to another dashboard.
        """
        if conversation_id:
            conversation = self.get_conversation(conversation_id)
            if conversation.dashboard_id != dashboard_id:
                raise ConversationNotFoundError(conversation_id)
            return conversation
        return self.create_conversation(dashboard_id, title=first_prompt, user_id=user_id)

    def append_message(
        self,
        conversation_id: str,
        role: MessageRole | str,
        content: str,
        charts: list[dict] | None = None,
    ) -> Message:
        """Append a message with the next sequence number.

        Args:
            conversation_id: Parent conversation.
            role: 'user' or 'assistant'.
            content: Message text.
            charts: Canonical chart payloads attached to an assistant reply.

        Returns:
            The created Message.
        """
        try:
            role_value = MessageRole(role).value
        except ValueError as e:
            raise ValidationError(f"Invalid message role: {role!r}") from e
        # The parent row lock serializes concurrent appends to one conversation
        conversation = lock_row(self.db, Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        max_seq = self.db.execute(
            select(func.max(Message.sequence)).where(
                Message.conversation_id == conversation_id
            )
        ).scalar()
        next_seq = (max_seq or 0) + 1

        message = Message(
            conversation_id=conversation_id,
            role=role_value,
            content=content,
            metadata_json=json.dumps({"charts": charts}) if charts else None,
            sequence=next_seq,
        )
        self.db.add(message)
        conversation.updated_at = utc_now_iso()
        self.db.flush()
        return message

    def get_messages(self, conversation_id: str) -> list[Message]:
        """Return a conversation's messages in order."""
        self.get_conversation(conversation_id)
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sequence)
        )
        return list(self.db.execute(stmt).scalars())

    def delete_conversation(self, conversation_id: str) -> None:
        conversation = self.get_conversation(conversation_id)
        self.db.delete(conversation)
        self.db.flush()
        logger.info("Deleted conversation %s", conversation_id)

    # Block chat history

    def get_chat_history(self, block_id: str, limit: int | None = None) -> list[BlockChatTurn]:
        """Return a block's chat history, most recent first."""
        if self.db.get(Block, block_id) is None:
            raise BlockNotFoundError(block_id)
        stmt = (
            select(BlockChatTurn)
            .where(BlockChatTurn.block_id == block_id)
            .order_by(BlockChatTurn.sequence.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars())

    def record_chat_turn(
        self,
        block_id: str,
        question: str,
        chart: ChartPayload,
    ) -> BlockChatTurn:
        """Append a prompt-to-chart exchange to a block's history."""
        if not (question or "").strip():
            raise ValidationError("Chat history question is required")
        if lock_row(self.db, Block, block_id) is None:
            raise BlockNotFoundError(block_id)

        max_seq = self.db.execute(
            select(func.max(BlockChatTurn.sequence)).where(
                BlockChatTurn.block_id == block_id
            )
        ).scalar()
        turn = BlockChatTurn(
            block_id=block_id,
            question=question.strip(),
            chart_data_json=chart.model_dump_json(),
            sequence=(max_seq or 0) + 1,
        )
        self.db.add(turn)
        self.db.flush()
        return turn

    def delete_chat_turn(self, turn_id: str) -> None:
        turn = self.db.get(BlockChatTurn, turn_id)
        if turn is None:
            raise ChatTurnNotFoundError(turn_id)
        self.db.delete(turn)
        self.db.flush()

    # Conversational memory

    def get_recent_context(
        self,
        block_id: str | None = None,
        conversation_id: str | None = None,
        limit: int = DEFAULT_CONTEXT_LIMIT,
    ) -> list[PriorTurn]:
        """Return up to ``limit`` prior turns, most recent first.

        Exactly one of ``block_id`` or ``conversation_id`` must be given.
        """
        if (block_id is None) == (conversation_id is None):
            raise ValidationError("Pass exactly one of block_id or conversation_id")
        if limit <= 0:
            return []

        if block_id is not None:
            return [
                PriorTurn(
                    question=turn.question,
                    chart=_chart_from_json(_load_json(turn.chart_data_json, "chat history chart")),
                )
                for turn in self.get_chat_history(block_id, limit=limit)
            ]

        turns: list[PriorTurn] = []
        pending: PriorTurn | None = None
        for message in self.get_messages(conversation_id):
            if message.role == MessageRole.user.value:
                if pending is not None:
                    turns.append(pending)
                pending = PriorTurn(question=message.content)
            elif pending is not None:
                charts = message_to_dict(message)["charts"]
                pending = PriorTurn(
                    question=pending.question,
                    chart=_chart_from_json(charts[0]) if charts else None,
                    answer=message.content,
                )
                turns.append(pending)
                pending = None
        if pending is not None:
            turns.append(pending)

        turns.reverse()
        return turns[:limit]
